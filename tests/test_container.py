import base64
import struct

import pytest

from kmscrypt.crypto.container import MAGIC, Container, build_header
from kmscrypt.errors import ContainerFormatError, CryptoError, IntegrityError


def sample(**overrides):
    fields = dict(
        provider="aws",
        key_id="alias/test",
        algorithm="AESGCM",
        wrapped_key=b"wrapped-key-blob",
        nonce=b"\x01" * 12,
        ciphertext=b"c" * 40,
    )
    fields.update(overrides)
    return Container(**fields)


def test_layout_is_fixed():
    data = sample().to_bytes()
    expected = (
        MAGIC + b"\x01"
        + struct.pack(">H", 3) + b"aws"
        + struct.pack(">H", 10) + b"alias/test"
        + struct.pack(">I", 16) + b"wrapped-key-blob"
        + b"\x01" * 12
        + struct.pack(">Q", 40) + b"c" * 40
    )
    assert data == expected


def test_parse_restores_fields():
    original = sample(algorithm="XCHACHA20", nonce=b"\x02" * 24, key_id="clé")
    assert Container.from_bytes(original.to_bytes()) == original
    assert Container.from_string(original.to_string()) == original


def test_header_excludes_wrapped_key_and_payload():
    container = sample()
    assert container.to_bytes().startswith(container.header())
    assert b"wrapped-key-blob" not in container.header()


@pytest.mark.parametrize("mutate", [
    lambda d: b"XXXX" + d[4:],                 # magic
    lambda d: d[:4] + b"\x09" + d[5:],         # algorithm id
    lambda d: d[:-1],                          # truncated
    lambda d: d + b"\x00",                     # trailing byte
    lambda d: d[:20],                          # header only
    lambda d: b"",
])
def test_malformed_containers_rejected(mutate):
    with pytest.raises(ContainerFormatError):
        Container.from_bytes(mutate(sample().to_bytes()))


def test_short_ciphertext_rejected():
    with pytest.raises(ContainerFormatError):
        Container.from_bytes(sample(ciphertext=b"short").to_bytes())


def test_bad_utf8_key_id_rejected():
    data = bytearray(sample().to_bytes())
    key_id_start = 4 + 1 + 2 + 3 + 2
    data[key_id_start] = 0xFF
    with pytest.raises(ContainerFormatError):
        Container.from_bytes(bytes(data))


def test_not_base64_rejected():
    with pytest.raises(ContainerFormatError):
        Container.from_string("not base64 !!")
    with pytest.raises(ContainerFormatError):
        Container.from_string(base64.b64encode(b"garbage").decode())


def test_load_accepts_binary_and_base64():
    original = sample()
    assert Container.load(original.to_bytes()) == original
    assert Container.load(original.to_string().encode('ascii') + b"\n") == original


def test_load_rejects_non_ascii_garbage():
    with pytest.raises(ContainerFormatError):
        Container.load(b"\xff\xfe\x00garbage")


def test_oversized_key_id_is_not_an_integrity_error():
    with pytest.raises(CryptoError) as excinfo:
        build_header("aws", "k" * 70000, "AESGCM")
    assert not isinstance(excinfo.value, IntegrityError)
