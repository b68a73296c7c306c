import pytest

from stackscript.utils.strings import (
    is_revert_id,
    new_revert_id,
    short_uid,
    to_str,
    truncate,
)


def test_revert_id_format():
    revert_id = new_revert_id()
    assert len(revert_id) == 26
    assert is_revert_id(revert_id)
    assert revert_id == revert_id.upper()
    assert not set("ILOU") & set(revert_id)


def test_revert_ids_are_unique():
    assert len({new_revert_id(1500000000.5) for _ in range(100)}) == 100


def test_revert_ids_sort_by_time():
    timestamps = [1400000000.0, 1500000000.5, 1500000000.6, 1700000000.25]
    revert_ids = [new_revert_id(timestamp) for timestamp in reversed(timestamps)]
    assert sorted(revert_ids) == list(reversed(revert_ids))


@pytest.mark.parametrize(
    "value,expected",
    [
        ("01BA7RV6ES86PZYCM3H28WM6KZ", True),
        ("01ba7rv6es86pzycm3h28wm6kz", True),
        ("01BA7RV6ES86PZYCM3H28WM6K", False),
        ("01BA7RV6ES86PZYCM3H28WM6KU", False),
        ("", False),
        (None, False),
    ],
)
def test_is_revert_id(value, expected):
    assert is_revert_id(value) == expected


def test_short_uid():
    assert len(short_uid()) == 8
    assert short_uid() != short_uid()


def test_to_str():
    assert to_str(b"vpc-1") == "vpc-1"
    assert to_str("vpc-1") == "vpc-1"


def test_truncate():
    assert truncate("a" * 10, max_length=5) == "aaaaa..."
    assert truncate("abc") == "abc"
    assert truncate(None) == ""
