from abc import ABC, abstractmethod

from kmscrypt.errors import ProviderError


class KeyProvider(ABC):
    """Abstract KMS provider interface for envelope encryption.

    A provider only ever wraps and unwraps data keys. Bulk payloads are
    encrypted locally, so wrap() refuses anything larger than the backend's
    native limit instead of passing it through.

    Implementations hold configuration and an SDK client only. They must not
    cache key material and must be safe to share between threads.
    """

    name = "abstract"
    max_wrap_size = 0

    @property
    @abstractmethod
    def key_id(self) -> str:
        """Key identity recorded in every container this provider wraps for."""

    def wrap(self, plaintext: bytes) -> bytes:
        """Return the opaque wrapped form of a data key."""
        if not plaintext:
            raise ProviderError("Refusing to wrap empty key material", provider=self.name)
        if len(plaintext) > self.max_wrap_size:
            raise ProviderError(
                f"Key material of {len(plaintext)} bytes exceeds the {self.name} "
                f"limit of {self.max_wrap_size} bytes",
                provider=self.name,
            )
        return self._wrap(bytes(plaintext))

    def unwrap(self, wrapped: bytes) -> bytes:
        """Return the plaintext data key for a blob produced by wrap()."""
        if not wrapped:
            raise ProviderError("Wrapped key is empty", provider=self.name)
        return self._unwrap(bytes(wrapped))

    @abstractmethod
    def _wrap(self, plaintext: bytes) -> bytes:
        """Backend call. Must raise kmscrypt.errors kinds only."""

    @abstractmethod
    def _unwrap(self, wrapped: bytes) -> bytes:
        """Backend call. Must raise kmscrypt.errors kinds only."""

    def __repr__(self):
        return f"{type(self).__name__}(key_id={self.key_id!r})"
