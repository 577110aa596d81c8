import logging

from azure.core.exceptions import (
    AzureError,
    ClientAuthenticationError,
    HttpResponseError,
    ResourceNotFoundError,
    ServiceRequestError,
    ServiceResponseError,
)
from azure.identity import DefaultAzureCredential
from azure.keyvault.keys.crypto import CryptographyClient, EncryptionAlgorithm

from kmscrypt.errors import (
    ProviderAuthError,
    ProviderError,
    ProviderNotFoundError,
    ProviderTransientError,
)
from .provider import KeyProvider

logger = logging.getLogger(__name__)

WRAP_ALGORITHM = EncryptionAlgorithm.rsa_oaep_256


class AzureKeyProvider(KeyProvider):
    """Azure Key Vault provider (RSA-OAEP-256 encrypt/decrypt).

    Pin a key version for containers that must stay decryptable after the
    key is rotated; without one Key Vault uses the current version.
    """

    name = "azure"
    max_wrap_size = 190  # RSA-2048 with OAEP-SHA256

    def __init__(self, vault_url: str, key_name: str, key_version: str | None = None,
                 credential=None, timeout: float | None = None, client=None):
        if not vault_url or not key_name:
            raise ProviderError("Azure vault url and key name are required", provider=self.name)
        self.key_url = f"{vault_url.rstrip('/')}/keys/{key_name}"
        if key_version:
            self.key_url += f"/{key_version}"
        self.client = client or self._make_client(self.key_url, credential, timeout)

    @staticmethod
    def _make_client(key_url, credential, timeout):
        kwargs = {}
        if timeout:
            kwargs.update(connection_timeout=timeout, read_timeout=timeout)
        try:
            return CryptographyClient(key_url, credential or DefaultAzureCredential(), **kwargs)
        except ValueError as e:
            raise ProviderError(f"Azure Key Vault client setup failed: {e}", provider="azure") from e

    @property
    def key_id(self) -> str:
        return self.key_url

    def _wrap(self, plaintext: bytes) -> bytes:
        logger.debug("azure key vault encrypt key=%s", self.key_url)
        try:
            return self.client.encrypt(WRAP_ALGORITHM, plaintext).ciphertext
        except AzureError as e:
            raise self._translate(e, "encrypt") from e

    def _unwrap(self, wrapped: bytes) -> bytes:
        logger.debug("azure key vault decrypt key=%s", self.key_url)
        try:
            return self.client.decrypt(WRAP_ALGORITHM, wrapped).plaintext
        except AzureError as e:
            raise self._translate(e, "decrypt") from e

    def _translate(self, err: Exception, operation: str) -> ProviderError:
        ctx = {'provider': self.name, 'key_id': self.key_url}
        message = f"Azure Key Vault {operation} failed: {type(err).__name__}"
        if isinstance(err, ClientAuthenticationError):
            return ProviderAuthError(message, **ctx)
        if isinstance(err, ResourceNotFoundError):
            return ProviderNotFoundError(message, **ctx)
        if isinstance(err, (ServiceRequestError, ServiceResponseError)):
            return ProviderTransientError(message, **ctx)
        if isinstance(err, HttpResponseError):
            status = err.status_code or 0
            if status in (401, 403):
                return ProviderAuthError(message, **ctx)
            if status == 404:
                return ProviderNotFoundError(message, **ctx)
            if status in (408, 429) or status >= 500:
                return ProviderTransientError(message, **ctx)
        return ProviderError(message, **ctx)
