"""Shared document store.

Documents are JSON objects kept under a key in an envelope of the form
``{"version": n, "data": {...}}``. Every commit bumps the version and notifies
subscribers in commit order. Deleting a document keeps a tombstone envelope
with ``data`` set to null, so versions never go backwards.

``transact`` is optimistic and retried on conflicts. ``set`` and ``delete``
are unconditional: they always win and never count against the retry budget.

Two backends share the same contract:

- ``RedisDocumentStore``: WATCH/MULTI optimistic transactions; the PUBLISH of
  the new envelope is queued in the same MULTI as the SET. Unconditional
  writes run as one Lua script.
- ``InMemoryDocumentStore``: one process, one event loop; used by tests and by
  single-process deployments.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import AsyncIterator, Callable, Dict, List, Optional, Tuple

from redis.asyncio import Redis
from redis.exceptions import WatchError

from rehearsal import settings
from rehearsal.exceptions import TransactionConflict

TransactionFunction = Callable[[Optional[dict]], Optional[dict]]
# Returns (changed, new document) for the document read inside a transaction.
CommitFunction = Callable[[Optional[dict]], Tuple[bool, Optional[dict]]]

# Envelopes a slow in-memory subscriber may fall behind before older ones are dropped.
SUBSCRIBER_BUFFER = 64

# KEYS: record, channel. ARGV: data as JSON, "1" to skip when absent or tombstoned.
# Envelopes are always written by encode_envelope or this script, so their layout is fixed.
_OVERWRITE_SCRIPT = """
local raw = redis.call('GET', KEYS[1])
local version = 0
local present = false
if raw then
    version = tonumber(string.match(raw, '^{"version": (%d+),'))
    present = string.match(raw, '^{"version": %d+, "data": null}$') == nil
end
if ARGV[2] == '1' and not present then
    return 0
end
local payload = '{"version": ' .. string.format('%d', version + 1) .. ', "data": ' .. ARGV[1] .. '}'
redis.call('SET', KEYS[1], payload)
redis.call('PUBLISH', KEYS[2], payload)
return 1
"""


def encode_envelope(version: int, document: Optional[dict]) -> str:
    return json.dumps({"version": version, "data": document}, ensure_ascii=False)


def decode_envelope(raw: Optional[str]) -> Tuple[int, Optional[dict]]:
    if raw is None:
        return 0, None
    envelope = json.loads(raw)
    return envelope["version"], envelope["data"]


class DocumentStore(ABC):
    def __init__(self, max_retries: int = settings.transaction_max_retries):
        self.max_retries = max_retries

    @abstractmethod
    async def get(self, key: str) -> Optional[dict]:
        """Read the current document, None when absent."""

    @abstractmethod
    def subscribe(self, key: str) -> AsyncIterator[Optional[dict]]:
        """Yield the current document, then every committed version in order."""

    @abstractmethod
    async def _commit_loop(self, key: str, compute: CommitFunction) -> Optional[dict]:
        """Read, compute and commit atomically, retrying on conflicts."""

    @abstractmethod
    async def _overwrite(self, key: str, document: Optional[dict], if_present: bool = False) -> None:
        """Bump the version and write ``document`` without any version check."""

    async def transact(self, key: str, fn: TransactionFunction) -> Optional[dict]:
        """Run an optimistic read-modify-write on ``key``.

        ``fn`` receives a private copy of the current document (None when
        absent) and returns the new document. Returning the very object it was
        given commits nothing. Exceptions raised by ``fn`` abort the
        transaction and propagate. ``fn`` may run several times, so it must
        not have side effects.

        Raises:
            TransactionConflict: other writers won ``max_retries`` times in a row
        """
        return await self._commit_loop(key, lambda current: _changed_by(fn, current))

    async def set(self, key: str, document: dict) -> None:
        """Overwrite ``key`` regardless of its current content. Last writer wins."""
        await self._overwrite(key, document)

    async def delete(self, key: str) -> None:
        """Replace a present document with a tombstone; absent keys are left alone."""
        await self._overwrite(key, None, if_present=True)

    async def close(self) -> None:
        pass


def _changed_by(fn: TransactionFunction, current: Optional[dict]) -> Tuple[bool, Optional[dict]]:
    updated = fn(current)
    return updated is not current, updated


class InMemoryDocumentStore(DocumentStore):
    def __init__(
        self,
        max_retries: int = settings.transaction_max_retries,
        subscriber_buffer: int = SUBSCRIBER_BUFFER,
    ):
        super().__init__(max_retries)
        self.subscriber_buffer = subscriber_buffer
        self._records: Dict[str, str] = {}
        self._subscribers: Dict[str, List[asyncio.Queue]] = {}
        self._lock = asyncio.Lock()

    def _read(self, key: str) -> Tuple[int, Optional[dict]]:
        return decode_envelope(self._records.get(key))

    def _write(self, key: str, version: int, document: Optional[dict]) -> None:
        payload = encode_envelope(version, document)
        self._records[key] = payload
        for queue in self._subscribers.get(key, []):
            if queue.full():
                # Newer envelopes carry the whole document, so the oldest can go.
                queue.get_nowait()
                logging.warning(f"Subscriber on {key} fell behind, dropped an old version")
            queue.put_nowait(payload)

    async def get(self, key: str) -> Optional[dict]:
        return self._read(key)[1]

    async def _commit_loop(self, key: str, compute: CommitFunction) -> Optional[dict]:
        for attempt in range(1, self.max_retries + 1):
            version, current = self._read(key)
            # Suspension point between read and commit, as with a remote store.
            await asyncio.sleep(0)
            changed, updated = compute(current)
            async with self._lock:
                if self._read(key)[0] != version:
                    logging.debug(f"Transaction conflict on {key}, attempt {attempt}")
                    continue
                if changed:
                    self._write(key, version + 1, updated)
            return updated
        raise TransactionConflict(key, self.max_retries)

    async def _overwrite(self, key: str, document: Optional[dict], if_present: bool = False) -> None:
        async with self._lock:
            version, current = self._read(key)
            if if_present and current is None:
                return
            self._write(key, version + 1, document)

    async def subscribe(self, key: str) -> AsyncIterator[Optional[dict]]:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.subscriber_buffer)
        self._subscribers.setdefault(key, []).append(queue)
        try:
            version, document = self._read(key)
            yield document
            while True:
                next_version, document = decode_envelope(await queue.get())
                if next_version <= version:
                    continue
                version = next_version
                yield document
        finally:
            self._subscribers[key].remove(queue)


class RedisDocumentStore(DocumentStore):
    def __init__(
        self,
        redis: Redis,
        namespace: str = settings.store_namespace,
        max_retries: int = settings.transaction_max_retries,
    ):
        super().__init__(max_retries)
        self.redis = redis
        self.namespace = namespace
        self._overwrite_script = redis.register_script(_OVERWRITE_SCRIPT)

    def _name(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    def _channel(self, key: str) -> str:
        return f"{self.namespace}:{key}:changes"

    async def get(self, key: str) -> Optional[dict]:
        return decode_envelope(await self.redis.get(self._name(key)))[1]

    async def _commit_loop(self, key: str, compute: CommitFunction) -> Optional[dict]:
        name = self._name(key)
        for attempt in range(1, self.max_retries + 1):
            async with self.redis.pipeline(transaction=True) as pipe:
                try:
                    await pipe.watch(name)
                    version, current = decode_envelope(await pipe.get(name))
                    changed, updated = compute(current)
                    pipe.multi()
                    if changed:
                        payload = encode_envelope(version + 1, updated)
                        pipe.set(name, payload)
                        pipe.publish(self._channel(key), payload)
                    # An empty EXEC still fails if the watched key moved.
                    await pipe.execute()
                    return updated
                except WatchError:
                    logging.debug(f"Transaction conflict on {name}, attempt {attempt}")
        raise TransactionConflict(key, self.max_retries)

    async def _overwrite(self, key: str, document: Optional[dict], if_present: bool = False) -> None:
        await self._overwrite_script(
            keys=[self._name(key), self._channel(key)],
            args=[json.dumps(document, ensure_ascii=False), "1" if if_present else "0"],
        )

    async def subscribe(self, key: str) -> AsyncIterator[Optional[dict]]:
        channel = self._channel(key)
        pubsub = self.redis.pubsub()
        await pubsub.subscribe(channel)
        logging.info(f"Subscribed to {channel}")
        try:
            # Subscribed before reading, so no commit can fall between the two.
            version, document = decode_envelope(await self.redis.get(self._name(key)))
            yield document
            while True:
                msg = await pubsub.get_message(ignore_subscribe_messages=True, timeout=None)
                if msg and msg["type"] == "message":
                    next_version, document = decode_envelope(msg["data"])
                    if next_version <= version:
                        continue
                    version = next_version
                    yield document
        finally:
            logging.info(f"Unsubscribing from {channel}")
            await pubsub.unsubscribe(channel)
            await pubsub.aclose()

    async def close(self) -> None:
        await self.redis.aclose()


def create_document_store() -> DocumentStore:
    """Build the store selected by STORE_BACKEND."""
    if settings.store_backend == "memory":
        logging.info("Using in-memory document store")
        return InMemoryDocumentStore()
    redis = Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        db=settings.redis_db,
        decode_responses=True,
        health_check_interval=30,
    )
    logging.info(f"Using Redis document store at {settings.redis_host}:{settings.redis_port}")
    return RedisDocumentStore(redis)
