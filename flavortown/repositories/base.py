"""Result union and shared plumbing for Supabase repositories.

Repository methods never raise: every failure, including exceptions from
the client, comes back as ``Err`` with a message naming the operation.
Callers branch with ``isinstance(result, Ok)`` or ``match``.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    data: T

    @property
    def success(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    error: str

    @property
    def success(self) -> bool:
        return False


Result = Union[Ok[T], Err]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SupabaseRepository:
    """Base for repositories over a synchronous supabase ``Client``.

    Queries are built on the event loop and executed in a worker thread so
    concurrent workflow batches do not block one another.
    """

    def __init__(self, client: Any) -> None:
        self._client = client

    def table(self, name: str) -> Any:
        return self._client.table(name)

    async def _execute(self, query: Any) -> Any:
        return await asyncio.to_thread(query.execute)
