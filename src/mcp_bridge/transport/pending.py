"""Correlation of held HTTP requests with their JSON-RPC responses.

Each inbound request carrying an id gets a single-shot future, registered
before the message handler sees the request. send() resolves the future and
removes the entry in one synchronous step, so out-of-order completion of
concurrent requests is safe. Duplicate in-flight ids are a caller contract
violation: the last registration wins.
"""

from __future__ import annotations

__all__ = [
    "JsonRpcMessage",
    "PendingResponseTable",
    "RequestId",
]

import asyncio
from typing import Any, Callable

RequestId = str | int
JsonRpcMessage = dict[str, Any]


class PendingResponseTable:
    """Mapping from request id to the future that delivers its response."""

    def __init__(self) -> None:
        self._entries: dict[RequestId, asyncio.Future[JsonRpcMessage]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._entries

    @property
    def ids(self) -> tuple[RequestId, ...]:
        return tuple(self._entries)

    def register(self, request_id: RequestId) -> asyncio.Future[JsonRpcMessage]:
        """Create the future for a request id.

        Must be called from within the running event loop.
        """
        future: asyncio.Future[JsonRpcMessage] = asyncio.get_running_loop().create_future()
        self._entries[request_id] = future
        return future

    def resolve(self, request_id: RequestId, message: JsonRpcMessage) -> bool:
        """Deliver a response and remove the entry.

        Returns:
            False if no entry exists for the id (late or duplicate response).
        """
        future = self._entries.pop(request_id, None)
        if future is None:
            return False
        if not future.done():
            future.set_result(message)
        return True

    def fail(self, request_id: RequestId, error: BaseException) -> bool:
        """Fail the future for an id and remove the entry.

        Returns:
            False if no entry exists for the id.
        """
        future = self._entries.pop(request_id, None)
        if future is None:
            return False
        if not future.done():
            future.set_exception(error)
        return True

    def discard(self, request_id: RequestId, future: asyncio.Future[JsonRpcMessage]) -> None:
        """Remove the entry only if it still belongs to the given future."""
        if self._entries.get(request_id) is future:
            del self._entries[request_id]

    def fail_all(self, error_factory: Callable[[RequestId], BaseException]) -> list[RequestId]:
        """Fail every remaining entry; returns the ids that were still pending."""
        dangling = list(self._entries)
        for request_id in dangling:
            self.fail(request_id, error_factory(request_id))
        return dangling
