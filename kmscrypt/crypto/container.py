import base64
import binascii
import struct
from dataclasses import dataclass

from kmscrypt.crypto.engine import ALGORITHM_IDS, ALGORITHMS, TAG_SIZE, nonce_size
from kmscrypt.errors import ContainerFormatError, CryptoError

# Format (big endian):
# HEADER (bound to the ciphertext as AEAD associated data)
#   Magic (4 bytes): b'KMC1'
#   AlgoId (1 byte): 1 = AESGCM, 2 = XCHACHA20
#   ProviderLen (2 bytes) + Provider (utf-8)
#   KeyIdLen (2 bytes) + KeyId (utf-8)
# KEY
#   WrappedKeyLen (4 bytes) + WrappedKey (opaque, integrity-protected by the provider)
# BODY
#   Nonce (12 bytes for AESGCM, 24 bytes for XCHACHA20)
#   CiphertextLen (8 bytes) + Ciphertext (includes 16-byte tag)

MAGIC = b'KMC1'
MAX_FIELD_LEN = 0xFFFF


@dataclass(frozen=True)
class Container:
    provider: str
    key_id: str
    algorithm: str
    wrapped_key: bytes
    nonce: bytes
    ciphertext: bytes

    def header(self) -> bytes:
        """Serialized header; used as associated data for the payload."""
        return build_header(self.provider, self.key_id, self.algorithm)

    def to_bytes(self) -> bytes:
        return b''.join([
            self.header(),
            struct.pack('>I', len(self.wrapped_key)),
            self.wrapped_key,
            self.nonce,
            struct.pack('>Q', len(self.ciphertext)),
            self.ciphertext,
        ])

    def to_string(self) -> str:
        return base64.b64encode(self.to_bytes()).decode('ascii')

    @classmethod
    def from_bytes(cls, data: bytes) -> "Container":
        reader = _Reader(data)
        if reader.take(len(MAGIC)) != MAGIC:
            raise ContainerFormatError("Invalid container format: bad magic")

        algo_id = reader.unpack('B')
        if algo_id not in ALGORITHM_IDS:
            raise ContainerFormatError(f"Invalid container format: unknown algorithm id {algo_id}")
        algorithm = ALGORITHM_IDS[algo_id]

        provider = reader.text(reader.unpack('>H'))
        key_id = reader.text(reader.unpack('>H'))
        wrapped_key = reader.take(reader.unpack('>I'))
        nonce = reader.take(nonce_size(algorithm))
        ciphertext = reader.take(reader.unpack('>Q'))

        if reader.remaining():
            raise ContainerFormatError("Invalid container format: trailing data")
        if not wrapped_key:
            raise ContainerFormatError("Invalid container format: empty wrapped key")
        if len(ciphertext) < TAG_SIZE:
            raise ContainerFormatError("Invalid container format: ciphertext shorter than tag")

        return cls(provider, key_id, algorithm, wrapped_key, nonce, ciphertext)

    @classmethod
    def from_string(cls, text: str) -> "Container":
        try:
            data = base64.b64decode(text.strip(), validate=True)
        except (binascii.Error, ValueError):
            raise ContainerFormatError("Invalid container format: not base64") from None
        return cls.from_bytes(data)

    @classmethod
    def load(cls, data: bytes) -> "Container":
        """Parse either the binary form or its base64 text form."""
        if data.startswith(MAGIC):
            return cls.from_bytes(data)
        try:
            text = data.decode('ascii')
        except UnicodeDecodeError:
            raise ContainerFormatError("Invalid container format: neither binary nor base64") from None
        return cls.from_string(text)


def build_header(provider: str, key_id: str, algorithm: str) -> bytes:
    provider_raw = provider.encode('utf-8')
    key_id_raw = key_id.encode('utf-8')
    if len(provider_raw) > MAX_FIELD_LEN or len(key_id_raw) > MAX_FIELD_LEN:
        raise CryptoError("Provider name or key id too long for container")
    return b''.join([
        MAGIC,
        struct.pack('B', ALGORITHMS[algorithm][0]),
        struct.pack('>H', len(provider_raw)), provider_raw,
        struct.pack('>H', len(key_id_raw)), key_id_raw,
    ])


class _Reader:
    def __init__(self, data: bytes):
        self.data = bytes(data)
        self.pos = 0

    def take(self, n: int) -> bytes:
        if self.pos + n > len(self.data):
            raise ContainerFormatError("Truncated container - data may be corrupted")
        chunk = self.data[self.pos:self.pos + n]
        self.pos += n
        return chunk

    def unpack(self, fmt: str) -> int:
        return struct.unpack(fmt, self.take(struct.calcsize(fmt)))[0]

    def text(self, n: int) -> str:
        try:
            return self.take(n).decode('utf-8')
        except UnicodeDecodeError:
            raise ContainerFormatError("Invalid container format: bad utf-8 field") from None

    def remaining(self) -> int:
        return len(self.data) - self.pos
