from dataclasses import dataclass

SEPARATOR = ":"
PRESENCE_PREFIX = "presence:"


@dataclass(frozen=True)
class Envelope:
    """A well-formed ``tag:payload`` frame. Both parts are opaque to the relay."""

    raw: str
    tag: str
    payload: str

    @property
    def is_presence(self) -> bool:
        return self.payload.startswith(PRESENCE_PREFIX)


def frame_text(frame: str | bytes) -> str:
    if isinstance(frame, bytes):
        return frame.decode("utf-8")
    return frame


def parse_envelope(frame: str | bytes) -> Envelope | None:
    """Returns None for frames that must be dropped: no separator, empty tag or empty payload."""
    try:
        raw = frame_text(frame)
    except UnicodeDecodeError:
        return None

    tag, sep, payload = raw.partition(SEPARATOR)
    if not sep or not tag or not payload:
        return None
    return Envelope(raw=raw, tag=tag, payload=payload)
