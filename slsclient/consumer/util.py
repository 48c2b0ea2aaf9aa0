"""Small helpers used by the consumer group workers."""

from __future__ import annotations

import time
from collections.abc import Mapping
from typing import Any, Callable, Iterable, Sequence

Stopped = Callable[[], bool] | bool


def dedupe(values: Iterable[int]) -> list[int]:
    """Drop repeated values, keeping the first occurrence order."""
    return list(dict.fromkeys(values))


def subtract(a: Sequence[int], b: Sequence[int]) -> list[int]:
    """Values of b that are not in a; all of b when a is empty."""
    if not a:
        return list(b)
    present = set(a)
    return [value for value in b if value not in present]


def int_list_equal(a: Sequence[int] | None, b: Sequence[int] | None) -> bool:
    """Compare two lists, treating None as empty."""
    return list(a or []) == list(b or [])


def contains(obj: Any, target: Any) -> bool:
    """Whether obj is an element of a sequence or set, or a key of a mapping."""
    if isinstance(target, Mapping):
        return obj in target
    if isinstance(target, (list, tuple, set, frozenset)):
        return obj in target
    return False


def get_log_count(log_group_list: Any) -> int:
    """Total number of logs over all groups; zero for None."""
    if log_group_list is None:
        return 0
    return sum(len(group.logs) for group in log_group_list.log_groups)


def get_log_group_count(log_group_list: Any) -> int:
    return len(log_group_list.log_groups)


def _is_stopped(stopped: Stopped) -> bool:
    return bool(stopped()) if callable(stopped) else bool(stopped)


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def sleep_interval_ms(interval_ms: int, last_check_ms: int, stopped: Stopped = False) -> None:
    """Sleep until interval_ms has passed since last_check_ms, in steps of at most 100 ms."""
    remaining = interval_ms - (_now_ms() - last_check_ms)
    while remaining > 0 and not _is_stopped(stopped):
        time.sleep(min(remaining, 100) / 1000)
        remaining = interval_ms - (_now_ms() - last_check_ms)


def sleep_interval_s(interval_s: int, last_check_s: int, stopped: Stopped = False) -> None:
    """Sleep until interval_s seconds have passed since last_check_s, in steps of at most 1 s."""

    def remaining() -> int:
        return interval_s * 1000 - (int(time.time()) - last_check_s) * 1000

    left = remaining()
    while left > 0 and not _is_stopped(stopped):
        time.sleep(min(left, 1000) / 1000)
        left = remaining()