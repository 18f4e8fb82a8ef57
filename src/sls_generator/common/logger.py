import logging
from logging.handlers import RotatingFileHandler
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_FILENAME = "sls_generator.log"


def setup_logging(verbose=False):
    """
    Root logger at DEBUG with a stdout handler showing INFO, or everything
    when verbose. Returns the stdout handler.
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    root.addHandler(stdout_handler)
    return stdout_handler


def add_file_logging(path, max_bytes=10 * 1024 * 1024, backup_count=5, root_logger=None):
    """ Keep the full DEBUG trail of a run next to its outputs
    """
    if not root_logger:
        root_logger = logging.getLogger()
    file_handler = RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backup_count)
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(file_handler)
    return file_handler


def remove_handler(handler, root_logger=None):
    if not root_logger:
        root_logger = logging.getLogger()
    root_logger.removeHandler(handler)
    handler.close()
