"""Error taxonomy for the Friendly Ping relay."""

from __future__ import annotations


class FriendlyPingError(Exception):
    """Base class for relay errors that abort a single dispatch."""


class MalformedPayload(FriendlyPingError, ValueError):
    """A required field is missing or has the wrong type."""

    def __init__(self, field: str, message: str | None = None) -> None:
        self.field = field
        super().__init__(message or f"missing or invalid field {field!r}")


class UnknownSender(FriendlyPingError, LookupError):
    """A ping names a sender that is not in the directory."""

    def __init__(self, address: str) -> None:
        self.address = address
        super().__init__("sender is not a registered client")


class UnknownClient(KeyError):
    """Raised by the directory when a key to move is absent."""

    @property
    def address(self) -> str | None:
        return self.args[0] if self.args else None

    def __str__(self) -> str:
        return "no client registered under the given address"


class DeliveryFailed(FriendlyPingError):
    """The push backend did not accept a message."""

    def __init__(self, message: str, *, target: str | None = None) -> None:
        self.target = target
        super().__init__(message)


class RegistrationDeliveryFailed(DeliveryFailed):
    """One or both follow-up sends of a registration failed.

    The client stays registered; ``failures`` maps the step name
    (``"broadcast"`` or ``"client_list"``) to the error it raised.
    """

    def __init__(self, target: str, failures: dict[str, Exception]) -> None:
        self.failures = dict(failures)
        steps = ", ".join(sorted(self.failures))
        super().__init__(f"registration deliveries failed: {steps}", target=target)


class FixtureError(RuntimeError):
    """Test data could not be loaded; the relay cannot start."""
