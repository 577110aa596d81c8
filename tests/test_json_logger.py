import io
import json
import logging

from kmscrypt.errors import ProviderTransientError
from kmscrypt.logging.json_logger import configure_logging


def test_json_lines_and_single_handler():
    stream = io.StringIO()
    root = logging.getLogger()
    before = len(root.handlers)
    try:
        configure_logging(logging.INFO, json_format=True, stream=stream)
        configure_logging(logging.INFO, json_format=True, stream=stream)
        assert len(root.handlers) == before + 1

        logging.getLogger("kmscrypt.test").info("encrypted %d bytes", 42)
        record = json.loads(stream.getvalue().splitlines()[-1])
        assert record["level"] == "INFO"
        assert record["logger"] == "kmscrypt.test"
        assert record["message"] == "encrypted 42 bytes"
    finally:
        for handler in list(root.handlers):
            if getattr(handler, '_kmscrypt', False):
                root.removeHandler(handler)


def test_crypt_error_context_is_logged():
    stream = io.StringIO()
    root = logging.getLogger()
    try:
        configure_logging(logging.INFO, json_format=True, stream=stream)
        try:
            raise ProviderTransientError("AWS KMS decrypt failed", provider="aws", key_id="alias/test")
        except ProviderTransientError:
            logging.getLogger("kmscrypt.test").error("decrypt failed", exc_info=True,
                                                     extra={'context': {'path': 'a.kmc'}})
        record = json.loads(stream.getvalue().splitlines()[-1])
        assert record["error_kind"] == "ProviderTransientError"
        assert record["retryable"] is True
        assert record["context"] == {"provider": "aws", "key_id": "alias/test", "path": "a.kmc"}
        assert "exc_info" in record
    finally:
        for handler in list(root.handlers):
            if getattr(handler, '_kmscrypt', False):
                root.removeHandler(handler)
