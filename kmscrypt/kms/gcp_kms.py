import logging

from google.api_core import exceptions as gexc
from google.auth import exceptions as auth_exceptions
from google.cloud import kms

from kmscrypt.errors import (
    ProviderAuthError,
    ProviderError,
    ProviderNotFoundError,
    ProviderTransientError,
)
from .provider import KeyProvider

logger = logging.getLogger(__name__)

AUTH_ERRORS = (gexc.Unauthenticated, gexc.PermissionDenied)
# FAILED_PRECONDITION is what Cloud KMS returns for disabled or destroyed versions
NOT_FOUND_ERRORS = (gexc.NotFound, gexc.FailedPrecondition)
TRANSIENT_ERRORS = (
    gexc.ServiceUnavailable, gexc.DeadlineExceeded, gexc.InternalServerError,
    gexc.TooManyRequests, gexc.ResourceExhausted, gexc.RetryError,
)


class GCPKeyProvider(KeyProvider):
    """Google Cloud KMS provider.

    Credentials come from GOOGLE_APPLICATION_CREDENTIALS / the metadata server
    unless a service account file is given explicitly.
    """

    name = "gcp"
    max_wrap_size = 64 * 1024

    def __init__(self, project_id: str, location: str, key_ring: str, key: str,
                 credentials_path: str | None = None, timeout: float | None = None,
                 client=None):
        missing = [n for n, v in (('project', project_id), ('location', location),
                                  ('key ring', key_ring), ('key', key)) if not v]
        if missing:
            raise ProviderError(f"GCP KMS {', '.join(missing)} required", provider=self.name)
        self.key_path = (f"projects/{project_id}/locations/{location}"
                         f"/keyRings/{key_ring}/cryptoKeys/{key}")
        self.timeout = timeout
        self.client = client or self._make_client(credentials_path)

    @staticmethod
    def _make_client(credentials_path):
        try:
            if credentials_path:
                return kms.KeyManagementServiceClient.from_service_account_file(credentials_path)
            return kms.KeyManagementServiceClient()
        except (auth_exceptions.DefaultCredentialsError, OSError) as e:
            raise ProviderAuthError(f"GCP KMS client setup failed: {e}", provider="gcp") from e

    @property
    def key_id(self) -> str:
        return self.key_path

    def _wrap(self, plaintext: bytes) -> bytes:
        logger.debug("gcp kms encrypt key=%s", self.key_path)
        try:
            response = self.client.encrypt(
                request={"name": self.key_path, "plaintext": plaintext},
                timeout=self.timeout,
            )
            return response.ciphertext
        except (gexc.GoogleAPIError, auth_exceptions.GoogleAuthError) as e:
            raise self._translate(e, "encrypt") from e

    def _unwrap(self, wrapped: bytes) -> bytes:
        logger.debug("gcp kms decrypt key=%s", self.key_path)
        try:
            response = self.client.decrypt(
                request={"name": self.key_path, "ciphertext": wrapped},
                timeout=self.timeout,
            )
            return response.plaintext
        except (gexc.GoogleAPIError, auth_exceptions.GoogleAuthError) as e:
            raise self._translate(e, "decrypt") from e

    def _translate(self, err: Exception, operation: str) -> ProviderError:
        ctx = {'provider': self.name, 'key_id': self.key_path}
        message = f"GCP KMS {operation} failed: {type(err).__name__}"
        if isinstance(err, AUTH_ERRORS) or isinstance(err, auth_exceptions.GoogleAuthError):
            if isinstance(err, auth_exceptions.TransportError):
                return ProviderTransientError(message, **ctx)
            return ProviderAuthError(message, **ctx)
        if isinstance(err, NOT_FOUND_ERRORS):
            return ProviderNotFoundError(message, **ctx)
        if isinstance(err, TRANSIENT_ERRORS):
            return ProviderTransientError(message, **ctx)
        return ProviderError(message, **ctx)
