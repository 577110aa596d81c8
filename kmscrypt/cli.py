#!/usr/bin/env python3
"""Encrypt and decrypt files or strings with a KMS-wrapped data key."""
import argparse
import base64
import logging
import sys

from kmscrypt.config import PROVIDER_ENV, REMOTE_PROVIDERS, load_environment, provider_options
from kmscrypt.crypto.container import Container
from kmscrypt.crypto.crypt import Crypt
from kmscrypt.errors import CryptError
from kmscrypt.kms.factory import build_provider
from kmscrypt.logging.json_logger import configure_logging
from kmscrypt.sys.fs import atomic_write, read_file
from kmscrypt.version import version_string

logger = logging.getLogger(__name__)


def _aws_args(p):
    p.add_argument('--key', dest='key_id', help='KMS key id, ARN or alias (env AWS_KEY)')
    p.add_argument('--region', dest='region_name', help='AWS region (env AWS_REGION)')
    p.add_argument('--profile', dest='profile_name', help='AWS shared credentials profile')


def _gcp_args(p):
    p.add_argument('--project', dest='project_id', help='GCP project (env GCP_PROJECT_ID)')
    p.add_argument('--location', help='Key ring location (env GCP_LOCATION)')
    p.add_argument('--keyring', dest='key_ring', help='Key ring (env GCP_KEY_RING)')
    p.add_argument('--key', help='Crypto key name (env GCP_KEY)')
    p.add_argument('--credentials', dest='credentials_path',
                   help='Service account JSON (env GOOGLE_APPLICATION_CREDENTIALS)')


def _azure_args(p):
    p.add_argument('--vault-url', help='Key Vault URL (env VAULT_URL)')
    p.add_argument('--name', dest='key_name', help='Key name (env VAULT_KEY)')
    p.add_argument('--version', dest='key_version', help='Key version (env VAULT_KEY_VERSION)')


def _local_args(p):
    p.add_argument('--key-file', dest='key_path',
                   help='Master key file, created if missing (env LOCAL_KEY_PATH)')


PROVIDER_ARGS = {
    'aws': _aws_args,
    'gcp': _gcp_args,
    'azure': _azure_args,
    'local': _local_args,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='kmscrypt', description=__doc__)
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')
    parser.add_argument('--json-logs', action='store_true', help='Log as JSON lines')
    parser.add_argument('--env-file', help='Load provider settings from this .env file')
    parser.add_argument('--version', action='version', version=version_string())
    commands = parser.add_subparsers(dest='command', required=True)

    for command, aliases in (('encrypt', ['enc', 'e']), ('decrypt', ['dec', 'd'])):
        cmd = commands.add_parser(command, aliases=aliases, help=f'{command.capitalize()} a file or string')
        cmd.set_defaults(operation=command)
        providers = cmd.add_subparsers(dest='provider', required=True)
        for name, add_args in PROVIDER_ARGS.items():
            p = providers.add_parser(name, help=f'Use {name} to wrap the data key')
            source = p.add_mutually_exclusive_group(required=True)
            source.add_argument('-i', '--in', dest='input', help='Input file')
            source.add_argument('-s', '--string', help='Literal input (base64 container when decrypting)')
            p.add_argument('-o', '--out', help='Output file (default: stdout)')
            if name in REMOTE_PROVIDERS:
                p.add_argument('--timeout', type=float, help='Seconds to wait for the KMS')
            add_args(p)
    return parser


def run(args) -> None:
    overrides = {opt: getattr(args, opt, None) for opt in PROVIDER_ENV[args.provider]}
    overrides['timeout'] = getattr(args, 'timeout', None)
    provider = build_provider(args.provider, provider_options(args.provider, overrides))
    crypt = Crypt(provider)
    if args.operation == 'encrypt':
        _encrypt(crypt, args)
    else:
        _decrypt(crypt, args)


def _encrypt(crypt: Crypt, args):
    # Files get the binary container, a terminal gets base64
    if args.input is not None and args.out:
        crypt.encrypt_file(args.input, args.out)
        return
    data = args.string.encode('utf-8') if args.string is not None else read_file(args.input)
    container = crypt.encrypt_bytes(data)
    if args.out:
        atomic_write(args.out, container)
    else:
        print(base64.b64encode(container).decode('ascii'))


def _decrypt(crypt: Crypt, args):
    # Accept both container forms from either source; plaintext is written as raw bytes
    if args.string is not None:
        source = args.string.encode('utf-8')
    else:
        source = read_file(args.input)
    try:
        container = Container.load(source).to_bytes()
    except CryptError as err:
        raise err.with_context(operation="decrypt", path=args.input)

    plaintext = crypt.decrypt_bytes(container)
    if args.out:
        atomic_write(args.out, plaintext)
    else:
        sys.stdout.buffer.write(plaintext)
        sys.stdout.flush()


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(logging.DEBUG if args.debug else logging.INFO, json_format=args.json_logs)
    load_environment(args.env_file)

    try:
        run(args)
    except CryptError as err:
        logger.debug("%s failed", args.operation, exc_info=True)
        print(f"Error: {err}", file=sys.stderr)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
