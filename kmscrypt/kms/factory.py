from kmscrypt.errors import ProviderError
from .provider import KeyProvider


def _require(name: str, options: dict, *required: str):
    missing = [opt for opt in required if not options.get(opt)]
    if missing:
        raise ProviderError(f"Missing {name} settings: {', '.join(missing)}", provider=name)


def _aws(**options) -> KeyProvider:
    from .aws_kms import AWSKeyProvider
    _require('aws', options, 'key_id')
    return AWSKeyProvider(**options)


def _gcp(**options) -> KeyProvider:
    from .gcp_kms import GCPKeyProvider
    _require('gcp', options, 'project_id', 'location', 'key_ring', 'key')
    return GCPKeyProvider(**options)


def _azure(**options) -> KeyProvider:
    from .azure_kms import AzureKeyProvider
    _require('azure', options, 'vault_url', 'key_name')
    return AzureKeyProvider(**options)


def _local(**options) -> KeyProvider:
    from .file_kms import LocalKeyProvider
    _require('local', options, 'key_path')
    return LocalKeyProvider(**options)


# SDKs are imported on first use so an unused cloud costs nothing at startup
PROVIDERS = {
    'aws': _aws,
    'gcp': _gcp,
    'azure': _azure,
    'local': _local,
}


def build_provider(name: str, options: dict) -> KeyProvider:
    try:
        builder = PROVIDERS[name]
    except KeyError:
        raise ProviderError(f"Unknown key provider: {name}") from None
    return builder(**options)
