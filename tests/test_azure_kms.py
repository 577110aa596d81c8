from unittest.mock import MagicMock

import pytest
from azure.core.exceptions import (
    ClientAuthenticationError,
    HttpResponseError,
    ResourceNotFoundError,
    ServiceRequestError,
)
from azure.keyvault.keys.crypto import EncryptionAlgorithm

from kmscrypt.errors import (
    ProviderAuthError,
    ProviderError,
    ProviderNotFoundError,
    ProviderTransientError,
)
from kmscrypt.kms.azure_kms import AzureKeyProvider

VAULT = "https://crypt-test.vault.azure.net/"


def http_error(status):
    err = HttpResponseError(message="failed")
    err.status_code = status
    return err


def test_azure_wrap_unwrap():
    client = MagicMock()
    client.encrypt.return_value = MagicMock(ciphertext=b"wrapped")
    client.decrypt.return_value = MagicMock(plaintext=b"\x02" * 32)
    kms = AzureKeyProvider(VAULT, "crypt-key", "abc123", client=client)

    assert kms.key_id == "https://crypt-test.vault.azure.net/keys/crypt-key/abc123"
    assert kms.wrap(b"\x02" * 32) == b"wrapped"
    client.encrypt.assert_called_once_with(EncryptionAlgorithm.rsa_oaep_256, b"\x02" * 32)
    assert kms.unwrap(b"wrapped") == b"\x02" * 32
    client.decrypt.assert_called_once_with(EncryptionAlgorithm.rsa_oaep_256, b"wrapped")


def test_azure_versionless_key():
    kms = AzureKeyProvider(VAULT, "crypt-key", client=MagicMock())
    assert kms.key_id == "https://crypt-test.vault.azure.net/keys/crypt-key"


def test_azure_rsa_limit():
    client = MagicMock()
    kms = AzureKeyProvider(VAULT, "crypt-key", client=client)
    with pytest.raises(ProviderError):
        kms.wrap(b"x" * 191)
    client.encrypt.assert_not_called()


@pytest.mark.parametrize("error,expected", [
    (ClientAuthenticationError(message="no token"), ProviderAuthError),
    (ResourceNotFoundError(message="no key"), ProviderNotFoundError),
    (ServiceRequestError("connection reset"), ProviderTransientError),
    (http_error(403), ProviderAuthError),
    (http_error(404), ProviderNotFoundError),
    (http_error(429), ProviderTransientError),
    (http_error(500), ProviderTransientError),
    (http_error(400), ProviderError),
])
def test_azure_error_mapping(error, expected):
    client = MagicMock()
    client.decrypt.side_effect = error
    kms = AzureKeyProvider(VAULT, "crypt-key", client=client)

    with pytest.raises(ProviderError) as excinfo:
        kms.unwrap(b"wrapped")
    assert type(excinfo.value) is expected
    assert excinfo.value.context["provider"] == "azure"
