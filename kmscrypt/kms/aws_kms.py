import logging

import boto3
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionError as BotoConnectionError,
    HTTPClientError,
    NoCredentialsError,
    PartialCredentialsError,
)

from kmscrypt.errors import (
    ProviderAuthError,
    ProviderError,
    ProviderNotFoundError,
    ProviderTransientError,
)
from .provider import KeyProvider

logger = logging.getLogger(__name__)

AUTH_CODES = {
    'AccessDeniedException', 'AccessDenied', 'UnrecognizedClientException',
    'InvalidSignatureException', 'ExpiredTokenException', 'InvalidClientTokenId',
    'IncompleteSignature',
}
NOT_FOUND_CODES = {
    'NotFoundException', 'DisabledException', 'KMSInvalidStateException',
}
TRANSIENT_CODES = {
    'ThrottlingException', 'LimitExceededException', 'DependencyTimeoutException',
    'KMSInternalException', 'KeyUnavailableException', 'ServiceUnavailable',
    'RequestTimeout', 'RequestTimeoutException', 'InternalFailure',
}


class AWSKeyProvider(KeyProvider):
    """AWS KMS provider using the Encrypt/Decrypt APIs.

    Expects AWS credentials available in environment, profile or instance role.
    """

    name = "aws"
    max_wrap_size = 4096  # KMS Encrypt plaintext limit

    def __init__(self, key_id: str, region_name: str | None = None,
                 profile_name: str | None = None, timeout: float | None = None,
                 client=None):
        if not key_id:
            raise ProviderError("AWS KMS key id is required", provider=self.name)
        self._key_id = key_id
        self.region_name = region_name
        self.client = client or self._make_client(region_name, profile_name, timeout)

    @staticmethod
    def _make_client(region_name, profile_name, timeout):
        # Retries are the caller's decision; one attempt per call
        config = Config(retries={'total_max_attempts': 1, 'mode': 'standard'})
        if timeout:
            config = config.merge(Config(connect_timeout=timeout, read_timeout=timeout))
        try:
            if profile_name:
                session = boto3.session.Session(profile_name=profile_name)
                return session.client('kms', region_name=region_name, config=config)
            return boto3.client('kms', region_name=region_name, config=config)
        except (NoCredentialsError, PartialCredentialsError) as e:
            raise ProviderAuthError(f"AWS KMS client setup failed: {e}", provider="aws") from e
        except BotoCoreError as e:
            # NoRegionError, ProfileNotFound and friends are configuration problems
            raise ProviderError(f"AWS KMS client setup failed: {e}", provider="aws") from e

    @property
    def key_id(self) -> str:
        return self._key_id

    def _wrap(self, plaintext: bytes) -> bytes:
        logger.debug("aws kms encrypt key_id=%s", self._key_id)
        try:
            resp = self.client.encrypt(KeyId=self._key_id, Plaintext=plaintext)
            return resp['CiphertextBlob']
        except (BotoCoreError, ClientError) as e:
            raise self._translate(e, "encrypt") from e

    def _unwrap(self, wrapped: bytes) -> bytes:
        logger.debug("aws kms decrypt key_id=%s", self._key_id)
        try:
            # Passing KeyId makes KMS reject blobs wrapped under another key
            resp = self.client.decrypt(CiphertextBlob=wrapped, KeyId=self._key_id)
            return resp['Plaintext']
        except (BotoCoreError, ClientError) as e:
            raise self._translate(e, "decrypt") from e

    def _translate(self, err: Exception, operation: str) -> ProviderError:
        ctx = {'provider': self.name, 'key_id': self._key_id}
        if isinstance(err, ClientError):
            code = err.response.get('Error', {}).get('Code', '')
            message = f"AWS KMS {operation} failed: {code}"
            if code in AUTH_CODES:
                return ProviderAuthError(message, **ctx)
            if code in NOT_FOUND_CODES:
                return ProviderNotFoundError(message, **ctx)
            status = err.response.get('ResponseMetadata', {}).get('HTTPStatusCode', 0)
            if code in TRANSIENT_CODES or status >= 500:
                return ProviderTransientError(message, **ctx)
            return ProviderError(message, **ctx)

        message = f"AWS KMS {operation} failed: {err}"
        if isinstance(err, (NoCredentialsError, PartialCredentialsError)):
            return ProviderAuthError(message, **ctx)
        if isinstance(err, (BotoConnectionError, HTTPClientError)):
            return ProviderTransientError(message, **ctx)
        return ProviderError(message, **ctx)
