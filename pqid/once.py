"""
Single-flight memo for lazily created key material.

The first caller runs the factory while concurrent callers wait on the same
lock and then read the stored value, so two first calls can never produce two
independent identities. A factory that raises leaves the cell empty and the
next call retries.
"""

from __future__ import annotations

import threading
from typing import Callable, Generic, TypeVar

T = TypeVar("T")


class _Unset:
    pass


_UNSET = _Unset()


class OnceCell(Generic[T]):
    def __init__(self, factory: Callable[[], T]) -> None:
        self._factory = factory
        self._lock = threading.Lock()
        self._value: object = _UNSET

    def get(self) -> T:
        value = self._value
        if value is not _UNSET:
            return value  # type: ignore[return-value]
        with self._lock:
            if self._value is _UNSET:
                self._value = self._factory()
            return self._value  # type: ignore[return-value]

    def is_set(self) -> bool:
        return self._value is not _UNSET
