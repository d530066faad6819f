# orderwatch/errors.py
class WatchDogError(Exception):
    """Base watchdog error."""
    def __init__(self, msg: str = ""):
        super().__init__(msg)
        self.msg = msg

    def __str__(self):
        return self.msg or self.__class__.__name__


class DecodeError(WatchDogError):
    """Payload could not be decoded into the expected model."""

    def __init__(self, msg: str = "", **ctx):
        super().__init__(msg)
        self.ctx = ctx

    def __str__(self):
        base = super().__str__()
        if self.ctx:
            details = ", ".join(f"{k}={v}" for k, v in self.ctx.items())
            return f"{base} [{details}]"
        return base


class VenueApiError(WatchDogError):
    """Venue answered with success=false."""
    def __init__(self, error: str, payload: dict | None = None):
        super().__init__(f"venue error: {error}")
        self.error = error
        self.payload = payload or {}


class BootstrapError(WatchDogError):
    """Startup reconciliation (order snapshot) failed."""


class FeedError(WatchDogError):
    """Push feed connect/handshake/subscribe failed."""


class WatchDogStateError(WatchDogError):
    """Lifecycle method called from a state that does not allow it."""
