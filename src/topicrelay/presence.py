import logging

from topicrelay.registry import Subscriber
from topicrelay.registry import TopicRegistry
from topicrelay.schemas import RosterEntry
from topicrelay.schemas import UserListPacket

logger = logging.getLogger(__name__)


class PresenceNotifier:
    def __init__(self, registry: TopicRegistry):
        self.registry = registry

    def roster(self, topic: str) -> list[RosterEntry]:
        """Identified subscribers of a topic; half-identified clients are left out."""
        return [
            RosterEntry(client_id=s.client_id, username=s.username)
            for s in self.registry.snapshot(topic)
            if s.identified
        ]

    def userlist_frame(self, topic: str) -> str:
        return UserListPacket(users=self.roster(topic)).to_frame()

    def greet(self, subscriber: Subscriber) -> None:
        """Send the current roster to a subscriber that just joined."""
        subscriber.push(self.userlist_frame(subscriber.topic))

    def announce(self, topic: str, exclude: Subscriber | None = None) -> int:
        """Push the roster to every member of the topic except ``exclude``."""
        members = self.registry.snapshot(topic)
        if not members:
            return 0

        frame = self.userlist_frame(topic)
        notified = 0
        for member in members:
            if member is exclude:
                continue
            member.deliver(frame)
            notified += 1
        logger.debug("Pushed userlist for topic %s to %d subscribers", topic, notified)
        return notified
