"""Exception taxonomy for provider calls and debate configuration."""


class DialecticError(Exception):
    """Base exception for dialectic errors."""


class ConfigurationError(DialecticError):
    """Raised for invalid settings or a missing credential.

    A missing credential is always detected before any network attempt.
    """


class ProviderCallError(DialecticError):
    """Base for failures of a single provider call."""

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        self.detail = message
        super().__init__(f"[{provider_name}] {message}")


class TransportError(ProviderCallError):
    """Raised when the network call itself failed (connection reset, DNS, ...)."""


class ProviderTimeoutError(TransportError):
    """Raised when a provider call exceeded its wall-clock timeout."""


class ProviderError(ProviderCallError):
    """Raised when the service answered with a non-success or unusable body."""

    def __init__(self, provider_name: str, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(provider_name, message)


class TruncationWarning(UserWarning):
    """A reply hit its output-token ceiling and was cut short."""
