import os
import tempfile

from kmscrypt.errors import CryptIOError


def read_file(path: str) -> bytes:
    try:
        with open(path, 'rb') as f:
            return f.read()
    except OSError as e:
        raise CryptIOError(f"Cannot read file: {e.strerror or e}", path=path) from e


def atomic_write(path: str, data: bytes, mode: int = 0o600):
    """
    Write data to path so that path either keeps its old content or holds
    all of data, never a partial write.

    The temporary file lives in the destination directory so os.replace
    stays a same-filesystem rename.
    """
    directory = os.path.dirname(os.path.abspath(path))
    try:
        fd, temp_path = tempfile.mkstemp(prefix='.' + os.path.basename(path) + '.',
                                         suffix='.tmp', dir=directory)
    except OSError as e:
        raise CryptIOError(f"Cannot create output file: {e.strerror or e}", path=path) from e

    try:
        with os.fdopen(fd, 'wb') as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(temp_path, mode)
        os.replace(temp_path, path)
    except BaseException as e:
        try:
            os.remove(temp_path)
        except FileNotFoundError:
            pass
        if isinstance(e, OSError):
            raise CryptIOError(f"Cannot write file: {e.strerror or e}", path=path) from e
        raise
