import pytest

from kmscrypt.config import load_environment, provider_options
from kmscrypt.errors import ProviderError
from kmscrypt.kms.factory import build_provider


def test_options_from_environment(monkeypatch):
    monkeypatch.setenv('AWS_KEY', 'alias/from-env')
    monkeypatch.setenv('AWS_REGION', 'eu-central-1')
    monkeypatch.delenv('AWS_PROFILE', raising=False)
    monkeypatch.delenv('KMSCRYPT_TIMEOUT', raising=False)

    options = provider_options('aws', {'key_id': None})
    assert options == {'key_id': 'alias/from-env', 'region_name': 'eu-central-1', 'timeout': 30.0}


def test_overrides_win(monkeypatch):
    monkeypatch.setenv('VAULT_URL', 'https://env.vault.azure.net')
    monkeypatch.setenv('KMSCRYPT_TIMEOUT', '12')
    options = provider_options('azure', {'vault_url': 'https://flag.vault.azure.net',
                                         'key_name': 'k'})
    assert options['vault_url'] == 'https://flag.vault.azure.net'
    assert options['timeout'] == 12.0


def test_local_has_no_timeout(monkeypatch):
    monkeypatch.setenv('LOCAL_KEY_PATH', '/tmp/k')
    assert provider_options('local') == {'key_path': '/tmp/k'}


def test_dotenv_file(tmp_path, monkeypatch):
    # setenv first so the value load_dotenv writes is undone after the test
    monkeypatch.setenv('GCP_KEY_RING', 'placeholder')
    monkeypatch.delenv('GCP_KEY_RING')
    env = tmp_path / '.env'
    env.write_text('GCP_KEY_RING=ring-from-file\n')
    assert load_environment(str(env))
    assert provider_options('gcp')['key_ring'] == 'ring-from-file'


def test_build_unknown_provider():
    with pytest.raises(ProviderError):
        build_provider('vault9000', {})


def test_build_reports_missing_settings():
    with pytest.raises(ProviderError, match='key_id'):
        build_provider('aws', {'timeout': 30.0})


def test_build_local(tmp_path):
    provider = build_provider('local', {'key_path': str(tmp_path / 'kms.key')})
    assert provider.name == 'local'
