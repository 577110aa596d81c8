import json
import logging
import sys

from kmscrypt.errors import CryptError

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class JSONFormatter(logging.Formatter):
    """One JSON object per line; CryptError context becomes its own field."""

    def format(self, record):
        payload = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = getattr(record, 'context', None)
        if record.exc_info:
            err = record.exc_info[1]
            if isinstance(err, CryptError):
                payload['error_kind'] = type(err).__name__
                payload['retryable'] = err.retryable
                context = {**err.context, **(context or {})}
            payload['exc_info'] = self.formatException(record.exc_info)
        if context:
            payload['context'] = {k: str(v) for k, v in context.items()}
        return json.dumps(payload)


def configure_logging(level=logging.INFO, json_format: bool = False, stream=None):
    """Install a single stderr handler on the root logger.

    Calling it again replaces the handler instead of stacking another one.
    """
    logger = logging.getLogger()
    logger.setLevel(level)

    for handler in list(logger.handlers):
        if getattr(handler, '_kmscrypt', False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JSONFormatter() if json_format else logging.Formatter(TEXT_FORMAT))
    handler._kmscrypt = True
    logger.addHandler(handler)

    # SDK wire logging would otherwise flood debug output
    for noisy in ('botocore', 'boto3', 'urllib3', 'azure', 'google'):
        logging.getLogger(noisy).setLevel(max(level, logging.WARNING))

    return logger
