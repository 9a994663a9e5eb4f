class RelayError(Exception):
    """Base class for relay failures."""


class HandshakeError(RelayError):
    """The client did not identify itself correctly; it is never registered."""


class StoreError(RelayError):
    """A persistence backend failed to append or read a topic log."""
