import os
from dataclasses import dataclass
from typing import Callable

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from nacl.bindings import (
    crypto_aead_xchacha20poly1305_ietf_decrypt,
    crypto_aead_xchacha20poly1305_ietf_encrypt,
)
from nacl.exceptions import CryptoError as NaclCryptoError

from kmscrypt.errors import CryptoError, IntegrityError

# AEAD selection: 'AESGCM' or 'XCHACHA20'
AEAD_ALGO = os.getenv('AEAD_ALGO', 'AESGCM').upper()

DATA_KEY_SIZE = 32  # 256-bit data keys for both algorithms
TAG_SIZE = 16

# algorithm name -> (container id, nonce size)
ALGORITHMS = {
    'AESGCM': (1, 12),
    'XCHACHA20': (2, 24),
}
ALGORITHM_IDS = {algo_id: name for name, (algo_id, _) in ALGORITHMS.items()}


def nonce_size(algorithm: str) -> int:
    return ALGORITHMS[algorithm][1]


def zero(buf: bytearray):
    """Overwrite key material in place."""
    for i in range(len(buf)):
        buf[i] = 0


@dataclass
class SealedPayload:
    data_key: bytearray
    nonce: bytes
    ciphertext: bytes  # ciphertext || tag
    algorithm: str


class EnvelopeCipher:
    """Local authenticated encryption with a fresh data key per call.

    The data key always comes from os.urandom. The nonce source can be
    replaced, which tests use to pin the nonce.
    """

    def __init__(self, algorithm: str | None = None,
                 nonce_source: Callable[[int], bytes] = os.urandom):
        algorithm = (algorithm or AEAD_ALGO).upper()
        if algorithm not in ALGORITHMS:
            raise CryptoError(f"Unsupported AEAD algorithm: {algorithm}")
        self.algorithm = algorithm
        self.nonce_source = nonce_source

    def encrypt(self, plaintext: bytes, aad: bytes | None = None) -> SealedPayload:
        """Encrypt plaintext under a new data key.

        The caller owns the returned data key and must zero it once it has
        been wrapped.
        """
        data_key = bytearray(os.urandom(DATA_KEY_SIZE))
        nonce = self.nonce_source(nonce_size(self.algorithm))
        if len(nonce) != nonce_size(self.algorithm):
            zero(data_key)
            raise CryptoError(f"Nonce source returned {len(nonce)} bytes, "
                              f"expected {nonce_size(self.algorithm)}")
        try:
            ciphertext = aead_encrypt(data_key, nonce, plaintext, aad, self.algorithm)
        except Exception:
            zero(data_key)
            raise
        return SealedPayload(data_key, nonce, ciphertext, self.algorithm)

    def decrypt(self, data_key: bytes | bytearray, nonce: bytes, ciphertext: bytes,
                aad: bytes | None = None, algorithm: str | None = None) -> bytes:
        """Decrypt and verify. Raises IntegrityError if the tag does not verify."""
        algorithm = algorithm or self.algorithm
        if len(nonce) != nonce_size(algorithm):
            raise IntegrityError("Decryption failed - invalid nonce")
        return aead_decrypt(data_key, nonce, ciphertext, aad, algorithm)


def aead_encrypt(key, nonce: bytes, plaintext: bytes, aad: bytes | None, algorithm: str) -> bytes:
    if len(key) != DATA_KEY_SIZE:
        raise CryptoError(f"Key must be exactly {DATA_KEY_SIZE} bytes, got {len(key)} bytes")
    try:
        if algorithm == 'XCHACHA20':
            # PyNaCl bindings expect bytes key and nonce (24 bytes)
            return crypto_aead_xchacha20poly1305_ietf_encrypt(
                bytes(plaintext), aad or b'', nonce, bytes(key))
        return AESGCM(key).encrypt(nonce, plaintext, aad)
    except (ValueError, TypeError, NaclCryptoError) as err:
        raise CryptoError(f"{algorithm} encryption failed: {err}") from err


def aead_decrypt(key, nonce: bytes, ciphertext: bytes, aad: bytes | None, algorithm: str) -> bytes:
    if len(key) != DATA_KEY_SIZE:
        # An unwrapped key of the wrong size means the wrapped key was not ours
        raise IntegrityError("Decryption failed - invalid key or corrupted data")
    try:
        if algorithm == 'XCHACHA20':
            return crypto_aead_xchacha20poly1305_ietf_decrypt(
                bytes(ciphertext), aad or b'', nonce, bytes(key))
        return AESGCM(key).decrypt(nonce, ciphertext, aad)
    except (InvalidTag, NaclCryptoError):
        raise IntegrityError("Decryption failed - invalid key or corrupted data") from None
    except (ValueError, TypeError) as err:
        raise CryptoError(f"{algorithm} decryption failed: {err}") from err
