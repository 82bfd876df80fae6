# routes/subscriptions.py
"""
Polling subscriptions over a MongoDB query.

A Subscription re-runs its query every ``interval`` seconds and yields the full
snapshot whenever it differs from the last one. Each snapshot replaces the
previous set. Use it as an async context manager so ``close()`` always runs:

    async with Subscription(db.tests, {"isApproved": True}) as sub:
        async for snapshot in sub:
            ...
"""
import asyncio
import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

import config

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class SubscriptionClosed(Exception):
    pass


class Subscription:
    def __init__(
        self,
        collection,
        query: Dict[str, Any],
        sort: Optional[List[Tuple[str, int]]] = None,
        limit: int = 0,
        interval: Optional[float] = None,
    ):
        self.collection = collection
        self.query = query
        self.sort = sort
        self.limit = limit
        self.interval = config.SUBSCRIPTION_POLL_SECONDS if interval is None else interval
        self.closed = False
        self._last_fingerprint = None

    async def fetch(self) -> List[dict]:
        if self.closed:
            raise SubscriptionClosed("Subscription is closed")
        cursor = self.collection.find(self.query, {"_id": 0})
        if self.sort:
            cursor = cursor.sort(self.sort)
        if self.limit:
            cursor = cursor.limit(self.limit)
        return await cursor.to_list(None)

    async def poll(self) -> Optional[List[dict]]:
        """The current snapshot if it changed since the last poll, else None."""
        snapshot = await self.fetch()
        fingerprint = json.dumps(snapshot, sort_keys=True, default=str)
        if fingerprint == self._last_fingerprint:
            return None
        self._last_fingerprint = fingerprint
        return snapshot

    async def changes(self) -> AsyncIterator[List[dict]]:
        while not self.closed:
            snapshot = await self.poll()
            if snapshot is not None:
                yield snapshot
            await asyncio.sleep(self.interval)

    def __aiter__(self):
        return self.changes()

    def close(self):
        if not self.closed:
            logger.info(f"Closing subscription on {getattr(self.collection, 'name', 'collection')} {self.query}")
        self.closed = True

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.close()
        return False


async def sse_stream(subscription: Subscription, encode) -> AsyncIterator[str]:
    """Server-sent events for each snapshot; the subscription is released on disconnect.

    A failed poll emits an ``error`` event and polling continues, so clients keep
    their last snapshot and show the failure.
    """
    async with subscription as sub:
        while not sub.closed:
            try:
                snapshot = await sub.poll()
            except SubscriptionClosed:
                return
            except Exception as e:
                logger.error(f"Subscription poll failed: {str(e)}", exc_info=True)
                yield f"event: error\ndata: {json.dumps({'detail': str(e)})}\n\n"
            else:
                if snapshot is not None:
                    yield f"data: {json.dumps(encode(snapshot))}\n\n"
            await asyncio.sleep(sub.interval)
