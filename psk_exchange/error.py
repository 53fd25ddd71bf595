"""PSK exchange error types."""


class PskExchangeError(Exception):
    """Base exception for key exchange errors."""
    pass


class TransportError(PskExchangeError):
    """RPC call could not be sent or no usable response was received."""
    pass


class RemoteError(TransportError):
    """Server answered the RPC call with an error."""

    def __init__(self, message: str, code: int = 0):
        super().__init__(message)
        self.code = code


class ConstraintViolation(PskExchangeError):
    """Request does not meet the server constraint policy."""

    def __init__(self, rules):
        self.rules = list(rules)
        super().__init__("Request does not meet constraints: " + "; ".join(self.rules))


class ProviderError(PskExchangeError):
    """Key exchange primitive failed."""
    pass


class SessionConsumed(ProviderError):
    """Exchange session was already finalized or discarded."""
    pass


class ProtocolError(PskExchangeError):
    """RPC response is syntactically valid but unexpected."""
    pass


class SinkError(PskExchangeError):
    """Notification sink rejected the exchange result."""
    pass


class InvalidPeer(SinkError):
    """No information about the requesting peer."""
    pass


class ConfigError(PskExchangeError):
    """Configuration error."""
    pass
