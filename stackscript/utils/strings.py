import os
import time
import uuid
from typing import Union

DEFAULT_ENCODING = "utf-8"

# Crockford's base32 alphabet, used for time-sortable identifiers
CROCKFORD_ALPHABET = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"

ULID_TIME_LENGTH = 10
ULID_RANDOM_LENGTH = 16


def to_str(obj: Union[str, bytes], encoding: str = DEFAULT_ENCODING, errors="strict") -> str:
    """If ``obj`` is an instance of ``binary_type``, return
    ``obj.decode(encoding, errors)``, otherwise return ``obj``"""
    return obj.decode(encoding, errors) if isinstance(obj, bytes) else obj


def truncate(data: str, max_length: int = 100) -> str:
    data = str(data or "")
    return ("%s..." % data[:max_length]) if len(data) > max_length else data


def short_uid() -> str:
    return str(uuid.uuid4())[0:8]


def _encode_base32(number: int, length: int) -> str:
    chars = []
    for _ in range(length):
        number, index = divmod(number, 32)
        chars.append(CROCKFORD_ALPHABET[index])
    return "".join(reversed(chars))


def new_revert_id(timestamp: float = None) -> str:
    """
    Creates a new revert ID in the ULID format, e.g., ``01BA7RV6ES86PZYCM3H28WM6KZ``: 48 bits of millisecond
    timestamp followed by 80 random bits, both encoded with Crockford's base32. IDs created later sort after
    IDs created earlier.

    :param timestamp: optional UNIX timestamp in seconds, defaults to now
    :return: a 26 character identifier
    """
    millis = int((time.time() if timestamp is None else timestamp) * 1000)
    randomness = int.from_bytes(os.urandom(10), "big")
    return _encode_base32(millis, ULID_TIME_LENGTH) + _encode_base32(
        randomness, ULID_RANDOM_LENGTH
    )


def is_revert_id(value: str) -> bool:
    if not value or len(value) != ULID_TIME_LENGTH + ULID_RANDOM_LENGTH:
        return False
    return all(char in CROCKFORD_ALPHABET for char in value.upper())
