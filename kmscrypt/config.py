import os

from dotenv import load_dotenv

# Environment variable backing each provider option. CLI flags win over these.
PROVIDER_ENV = {
    'aws': {
        'key_id': 'AWS_KEY',
        'region_name': 'AWS_REGION',
        'profile_name': 'AWS_PROFILE',
    },
    'gcp': {
        'project_id': 'GCP_PROJECT_ID',
        'location': 'GCP_LOCATION',
        'key_ring': 'GCP_KEY_RING',
        'key': 'GCP_KEY',
        'credentials_path': 'GOOGLE_APPLICATION_CREDENTIALS',
    },
    'azure': {
        'vault_url': 'VAULT_URL',
        'key_name': 'VAULT_KEY',
        'key_version': 'VAULT_KEY_VERSION',
    },
    'local': {
        'key_path': 'LOCAL_KEY_PATH',
    },
}

# Providers that talk to a remote service accept a per-call timeout
REMOTE_PROVIDERS = ('aws', 'gcp', 'azure')
DEFAULT_TIMEOUT = 30.0


def load_environment(dotenv_path: str | None = None) -> bool:
    """Load a .env file into os.environ without overriding set variables."""
    return load_dotenv(dotenv_path=dotenv_path)


def provider_options(name: str, overrides: dict | None = None) -> dict:
    """Resolve constructor options for a provider from overrides and env."""
    overrides = overrides or {}
    options = {}
    for option, env_var in PROVIDER_ENV.get(name, {}).items():
        value = overrides.get(option)
        if value is None:
            value = os.getenv(env_var)
        if value:
            options[option] = value

    if name in REMOTE_PROVIDERS:
        timeout = overrides.get('timeout')
        if timeout is None:
            timeout = os.getenv('KMSCRYPT_TIMEOUT', DEFAULT_TIMEOUT)
        options['timeout'] = float(timeout)
    return options
