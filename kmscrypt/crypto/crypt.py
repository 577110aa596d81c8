import base64
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, Optional

from kmscrypt.crypto.container import Container, build_header
from kmscrypt.crypto.engine import EnvelopeCipher, zero
from kmscrypt.errors import (
    CryptError,
    KeyMismatchError,
    OperationCancelledError,
    PayloadEncodingError,
)
from kmscrypt.kms.provider import KeyProvider
from kmscrypt.sys.fs import atomic_write, read_file

logger = logging.getLogger(__name__)

CheckState = Optional[Callable[[], bool]]


def _check(check_state: CheckState, stage: str):
    if check_state is not None and not check_state():
        raise OperationCancelledError(f"Operation cancelled {stage}")


class Crypt:
    """
    Envelope encryption of bytes, strings and files.

    The payload is sealed locally by EnvelopeCipher under a fresh data key;
    only that key travels to the provider. The key identity is embedded in
    the container and checked against the provider before any unwrap call.

    The provider is always passed in; there is no default key.
    """

    def __init__(self, provider: KeyProvider, cipher: EnvelopeCipher | None = None):
        self.provider = provider
        self.cipher = cipher or EnvelopeCipher()

    def _context(self, **extra) -> dict:
        return dict(provider=self.provider.name, key_id=self.provider.key_id, **extra)

    def encrypt_bytes(self, plaintext: bytes, check_state: CheckState = None) -> bytes:
        _check(check_state, "before encryption")
        logger.debug("Encrypting %d bytes with %s key %s",
                     len(plaintext), self.provider.name, self.provider.key_id)
        try:
            return self._encrypt(plaintext, check_state).to_bytes()
        except CryptError as err:
            raise err.with_context(operation="encrypt", **self._context())

    def _encrypt(self, plaintext: bytes, check_state: CheckState) -> Container:
        header = build_header(self.provider.name, self.provider.key_id, self.cipher.algorithm)
        sealed = self.cipher.encrypt(plaintext, aad=header)
        try:
            wrapped_key = self.provider.wrap(sealed.data_key)
            _check(check_state, "after key wrap")
        finally:
            zero(sealed.data_key)
        return Container(self.provider.name, self.provider.key_id, sealed.algorithm,
                         wrapped_key, sealed.nonce, sealed.ciphertext)

    def decrypt_bytes(self, data: bytes, check_state: CheckState = None) -> bytes:
        _check(check_state, "before decryption")
        try:
            container = Container.from_bytes(data)
            return self._decrypt(container, check_state)
        except CryptError as err:
            raise err.with_context(operation="decrypt", **self._context())

    def _decrypt(self, container: Container, check_state: CheckState) -> bytes:
        if container.provider != self.provider.name or container.key_id != self.provider.key_id:
            raise KeyMismatchError(
                f"Container was encrypted with {container.provider} key "
                f"{container.key_id}, not this {self.provider.name} key")
        logger.debug("Decrypting %d bytes with %s key %s",
                     len(container.ciphertext), self.provider.name, self.provider.key_id)

        data_key = bytearray(self.provider.unwrap(container.wrapped_key))
        try:
            _check(check_state, "after key unwrap")
            return self.cipher.decrypt(data_key, container.nonce, container.ciphertext,
                                       aad=container.header(), algorithm=container.algorithm)
        finally:
            zero(data_key)

    def encrypt_string(self, text: str, check_state: CheckState = None) -> str:
        """Encrypt UTF-8 text; returns the container as base64."""
        return base64.b64encode(self.encrypt_bytes(text.encode('utf-8'), check_state)).decode('ascii')

    def decrypt_string(self, text: str, check_state: CheckState = None) -> str:
        _check(check_state, "before decryption")
        try:
            plaintext = self._decrypt(Container.from_string(text), check_state)
            return plaintext.decode('utf-8')
        except UnicodeDecodeError:
            raise PayloadEncodingError("Decrypted payload is not valid UTF-8 text").with_context(
                operation="decrypt", **self._context()) from None
        except CryptError as err:
            raise err.with_context(operation="decrypt", **self._context())

    def encrypt_file(self, input_path: str, output_path: str, check_state: CheckState = None):
        """Encrypt input_path into output_path; output_path is written atomically."""
        self._process_file(self.encrypt_bytes, "encrypt", input_path, output_path, check_state)

    def decrypt_file(self, input_path: str, output_path: str, check_state: CheckState = None):
        """Decrypt input_path into output_path; nothing is written unless it verifies."""
        self._process_file(self.decrypt_bytes, "decrypt", input_path, output_path, check_state)

    def _process_file(self, transform, operation, input_path, output_path, check_state):
        try:
            data = read_file(input_path)
            result = transform(data, check_state)
            _check(check_state, "before writing output")
            atomic_write(output_path, result)
        except CryptError as err:
            raise err.with_context(operation=operation, path=input_path, **self._context())
        logger.info("%sed %s -> %s", operation.capitalize(), input_path, output_path)

    def encrypt_files(self, pairs: Iterable[tuple[str, str]], max_workers: int = 4) -> list:
        return self._batch(self.encrypt_file, pairs, max_workers)

    def decrypt_files(self, pairs: Iterable[tuple[str, str]], max_workers: int = 4) -> list:
        return self._batch(self.decrypt_file, pairs, max_workers)

    @staticmethod
    def _batch(operation, pairs, max_workers) -> list:
        """
        Run independent file operations on a thread pool.

        Returns (input, output, error) tuples in input order; error is None on
        success. One failing file does not stop the others.
        """
        pairs = list(pairs)

        def run(pair):
            src, dst = pair
            try:
                operation(src, dst)
                return src, dst, None
            except CryptError as err:
                logger.warning("Failed %s: %s", src, err)
                return src, dst, err

        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            return list(pool.map(run, pairs))
