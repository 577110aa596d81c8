import hashlib
import logging
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from kmscrypt.errors import (
    CryptIOError,
    ProviderError,
    ProviderNotFoundError,
)
from .provider import KeyProvider

logger = logging.getLogger(__name__)

MASTER_KEY_SIZE = 32
NONCE_SIZE = 12


class LocalKeyProvider(KeyProvider):
    """Simple file-backed KMS for local testing only.

    Stores a single master key in a file (protected via file perms) and wraps
    data keys with AESGCM. The key id is the master key's fingerprint, so a
    container stays tied to the key rather than to where the file lives.
    """

    name = "local"
    max_wrap_size = 1024

    def __init__(self, key_path: str, create: bool = True):
        self.key_path = key_path
        if not os.path.exists(key_path):
            if not create:
                raise ProviderNotFoundError("Local master key file not found",
                                            provider=self.name, path=key_path)
            self._create_master(key_path)
        master = self._load_master()
        if len(master) != MASTER_KEY_SIZE:
            raise ProviderError(f"Local master key must be {MASTER_KEY_SIZE} bytes",
                                provider=self.name, path=key_path)
        self._key_id = "sha256:" + hashlib.sha256(master).hexdigest()[:32]

    @staticmethod
    def _create_master(key_path: str):
        logger.info("Generating local master key at %s", key_path)
        mk = AESGCM.generate_key(bit_length=256)
        try:
            fd = os.open(key_path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
            with os.fdopen(fd, 'wb') as f:
                f.write(mk)
        except FileExistsError:
            # Another process won the race; use its key
            return
        except OSError as e:
            raise CryptIOError(f"Cannot create master key: {e.strerror}", path=key_path) from e

    def _load_master(self) -> bytes:
        # Read per call; nothing is cached between operations
        try:
            with open(self.key_path, 'rb') as f:
                return f.read()
        except FileNotFoundError as e:
            raise ProviderNotFoundError("Local master key file not found",
                                        provider=self.name, path=self.key_path) from e
        except OSError as e:
            raise CryptIOError(f"Cannot read master key: {e.strerror}", path=self.key_path) from e

    @property
    def key_id(self) -> str:
        return self._key_id

    def _wrap(self, plaintext: bytes) -> bytes:
        aesgcm = AESGCM(self._load_master())
        nonce = os.urandom(NONCE_SIZE)
        return nonce + aesgcm.encrypt(nonce, plaintext, self._key_id.encode())

    def _unwrap(self, wrapped: bytes) -> bytes:
        aesgcm = AESGCM(self._load_master())
        nonce, enc = wrapped[:NONCE_SIZE], wrapped[NONCE_SIZE:]
        try:
            return aesgcm.decrypt(nonce, enc, self._key_id.encode())
        except (InvalidTag, ValueError):
            raise ProviderError("Local key unwrap failed: wrapped key not produced by this key",
                                provider=self.name, key_id=self._key_id) from None
