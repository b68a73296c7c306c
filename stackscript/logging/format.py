"""Tools for formatting stackscript logs."""
import logging
from functools import lru_cache

MAX_NAME_LEN = 26

LOG_FORMAT = f"%(asctime)s.%(msecs)03d %(ss_level)5s --- %(ss_name)-{MAX_NAME_LEN}s : %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

CUSTOM_LEVEL_NAMES = {
    50: "FATAL",
    40: "ERROR",
    30: "WARN",
    20: "INFO",
    10: "DEBUG",
}


class DefaultFormatter(logging.Formatter):
    """
    A formatter that uses ``LOG_FORMAT`` and ``LOG_DATE_FORMAT``.
    """

    def __init__(self, fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT):
        super(DefaultFormatter, self).__init__(fmt=fmt, datefmt=datefmt)


class AddFormattedAttributes(logging.Filter):
    """
    Filter that adds two attributes to a log record:

    - ss_level: the abbreviated loglevel that's max 5 characters long
    - ss_name: the abbreviated name of the logger (e.g., `s.template.engine`), trimmed to ``MAX_NAME_LEN``
    """

    max_name_len: int

    def __init__(self, max_name_len: int = None):
        super(AddFormattedAttributes, self).__init__()
        self.max_name_len = max_name_len if max_name_len else MAX_NAME_LEN

    def filter(self, record):
        record.ss_level = CUSTOM_LEVEL_NAMES.get(record.levelno, record.levelname)
        record.ss_name = self._get_compressed_logger_name(record.name)
        return True

    @lru_cache(maxsize=256)
    def _get_compressed_logger_name(self, name):
        return compress_logger_name(name, self.max_name_len)


def compress_logger_name(name: str, length: int) -> str:
    """
    Shortens a dotted logger name to at most ``length`` characters, e.g. ``stackscript.drivers.aws`` with length 16
    becomes ``s.drivers.aws``. Parts are written out from the right as long as they fit, the others are cut to
    their first letter.

    :param name: the logger name
    :param length: the max length of the logger name
    :return: the compressed name
    """
    if len(name) <= length:
        return name

    parts = name.split(".")
    result = [part[0] for part in parts]
    # characters left once every part is cut to one letter
    budget = length - (2 * len(parts) - 1)
    for index in reversed(range(len(parts))):
        extra = len(parts[index]) - 1
        if extra > budget:
            if index == len(parts) - 1 and budget > 0:
                result[index] = parts[index][: budget + 1]
            break
        result[index] = parts[index]
        budget -= extra
    return ".".join(result)
