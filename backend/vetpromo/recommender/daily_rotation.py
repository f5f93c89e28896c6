"""
Daily rotation hash
===================

Reference implementation of the tie-break hash. Every consumer that must
reproduce a selection (explanation cache, other services) has to use exactly
this algorithm:

    h = 0
    for each byte b of UTF-8(pet_id + "YYYY-MM-DD"):
        h = (h * 31 + b) mod 2**32
    index = h mod n            # h is unsigned

For ASCII input this equals the classic Java/JS `s.hashCode()` reinterpreted
as unsigned 32-bit.

Test vectors:
    string_hash_32("")                  == 0
    string_hash_32("a")                 == 97
    string_hash_32("abc")               == 96354
    string_hash_32("pet-1232024-01-15") == 1628278247
"""

from datetime import date
from typing import Sequence, TypeVar

T = TypeVar("T")

_MASK_32 = 0xFFFFFFFF


def string_hash_32(value: str) -> int:
    """Unsigned 32-bit multiply-by-31 accumulate over the UTF-8 bytes of `value`."""
    h = 0
    for byte in value.encode("utf-8"):
        h = (h * 31 + byte) & _MASK_32
    return h


def rotation_key(pet_id: str, day: date) -> str:
    return f"{pet_id}{day.isoformat()}"


def rotation_index(pet_id: str, day: date, size: int) -> int:
    """
    Stable index in [0, size) for a pet on a calendar day.

    Raises:
        ValueError: If size < 1
    """
    if size < 1:
        raise ValueError(f"size must be >= 1, got {size}")
    return string_hash_32(rotation_key(pet_id, day)) % size


def pick_for_day(items: Sequence[T], pet_id: str, day: date) -> T:
    """Pick one of `items` deterministically for (pet, day)."""
    return items[rotation_index(pet_id, day, len(items))]
