"""Best-effort replication of documents to peers sharing a space id."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any

import aiohttp

logger = logging.getLogger(__name__)


def scoped_key(namespace: str, key: str) -> str:
    """Address of ``key`` inside a space, e.g. ``<space-id>/forest``."""
    return f"{namespace}/{key}"


class ReplicationBridge(ABC):
    """Eventually-consistent key/value replication, last write wins.

    Replicated data is never authoritative: it only seeds state that is
    missing locally.
    """

    @abstractmethod
    def push(self, namespace: str, key: str, value: str) -> None:
        """Publish ``value`` without waiting for delivery. Never raises."""

    @abstractmethod
    async def pull_once(self, namespace: str, key: str) -> str | None:
        """Fetch the latest replicated value, or None if there is none."""

    async def close(self) -> None:
        """Flush pending pushes and release resources."""


class InMemoryReplicationBridge(ReplicationBridge):
    """Bridge backed by a dict, shared by every controller given the same instance."""

    def __init__(self) -> None:
        self._documents: dict[str, str] = {}

    def push(self, namespace: str, key: str, value: str) -> None:
        self._documents[scoped_key(namespace, key)] = value

    async def pull_once(self, namespace: str, key: str) -> str | None:
        return self._documents.get(scoped_key(namespace, key))

    @property
    def documents(self) -> dict[str, str]:
        return dict(self._documents)


class HttpReplicationBridge(ReplicationBridge):
    """Bridge talking to a key/value HTTP service.

    ``PUT {api_url}/spaces/{namespace}/{key}`` stores a document and
    ``GET`` on the same URL returns it (404 when absent).
    """

    def __init__(self, api_url: str, timeout_seconds: float = 10.0):
        self.api_url = api_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session: aiohttp.ClientSession | None = None
        self._pending: set[asyncio.Task] = set()
        self._last_push_error: str | None = None

    def _url(self, namespace: str, key: str) -> str:
        return f"{self.api_url}/spaces/{scoped_key(namespace, key)}"

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    def push(self, namespace: str, key: str, value: str) -> None:
        try:
            task = asyncio.get_running_loop().create_task(self._put(namespace, key, value))
        except RuntimeError:
            logger.warning(f"No event loop, dropping replication push for '{key}'")
            return

        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _put(self, namespace: str, key: str, value: str) -> None:
        try:
            async with self._get_session().put(
                self._url(namespace, key),
                data=value,
                headers={"Content-Type": "application/json"},
            ) as resp:
                if resp.status >= 400:
                    text = await resp.text()
                    self._last_push_error = f"{resp.status} - {text}"
                    logger.warning(f"Replication push for '{key}' rejected: {resp.status} - {text}")
                else:
                    self._last_push_error = None
                    logger.debug(f"Replicated '{key}' to space {namespace}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self._last_push_error = str(e)
            logger.warning(f"Network error replicating '{key}': {e}")

    async def pull_once(self, namespace: str, key: str) -> str | None:
        async with self._get_session().get(self._url(namespace, key)) as resp:
            if resp.status == 404:
                return None
            if resp.status != 200:
                text = await resp.text()
                raise aiohttp.ClientResponseError(
                    resp.request_info,
                    resp.history,
                    status=resp.status,
                    message=f"Failed to pull '{key}': {text}",
                )
            return await resp.text()

    async def close(self) -> None:
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
            self._pending.clear()
        if self._session is not None:
            await self._session.close()
            self._session = None

    @property
    def status(self) -> dict[str, Any]:
        """Get replication status."""
        return {
            "api_url": self.api_url,
            "pending_pushes": len(self._pending),
            "last_push_error": self._last_push_error,
        }
