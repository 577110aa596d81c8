"""
Error taxonomy for kmscrypt.

Every failure raised by the library is a subclass of CryptError so callers can
branch on the kind of failure instead of matching messages. Only
ProviderTransientError is marked retryable; the library itself never retries.
"""


class CryptError(Exception):
    """Base class for all kmscrypt errors."""

    retryable = False

    def __init__(self, message: str = "", **context):
        super().__init__(message)
        self.message = message
        self.context = dict(context)

    def with_context(self, **context) -> "CryptError":
        """Attach operation context (file, provider, ...) and return self."""
        for key, value in context.items():
            if value is not None:
                self.context.setdefault(key, value)
        return self

    def __str__(self):
        if not self.context:
            return self.message
        details = ", ".join(f"{k}={v}" for k, v in sorted(self.context.items()))
        return f"{self.message} ({details})"


class CryptoError(CryptError):
    """Local cryptographic primitive failure."""


class IntegrityError(CryptError):
    """Authentication tag did not verify: tampered data or wrong key."""


class ContainerFormatError(IntegrityError):
    """Container bytes could not be parsed."""


class ProviderError(CryptError):
    """Key provider failure that fits no more specific kind."""


class ProviderAuthError(ProviderError):
    """Credentials missing or not permitted to use the key."""


class ProviderNotFoundError(ProviderError):
    """Referenced key, key ring or vault does not exist or is disabled."""


class ProviderTransientError(ProviderError):
    """Network, timeout or throttling failure. Safe to retry."""

    retryable = True


class KeyMismatchError(ProviderError):
    """Container was wrapped by a different provider or key identity."""


class CryptIOError(CryptError):
    """File read or write failure."""


class PayloadEncodingError(CryptError):
    """Authentic plaintext that is not valid text in the requested encoding."""


class OperationCancelledError(CryptError):
    """The caller asked for the operation to stop."""


def is_retryable(err: BaseException) -> bool:
    return isinstance(err, CryptError) and err.retryable
