"""Cooperative cancellation token shared by one pipeline run."""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable
from typing import TypeVar

import structlog

from analyst.exceptions import PipelineCancelled

logger = structlog.get_logger()

T = TypeVar("T")


class CancellationToken:
    """
    Created by the caller for each run and cancelled when the caller goes away
    (client disconnect, SIGINT). Every outbound call checks it before starting
    and runs under guard() so an in-flight request is aborted, not abandoned.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "canceled") -> None:
        if self._event.is_set():
            return
        self.reason = reason
        self._event.set()
        logger.info("cancellation_requested", reason=reason)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise PipelineCancelled(self.reason or "canceled")

    async def guard(self, aw: Awaitable[T]) -> T:
        """Await `aw`, cancelling its task and raising PipelineCancelled if the token fires first."""
        if self._event.is_set():
            if asyncio.iscoroutine(aw):
                aw.close()
            raise PipelineCancelled(self.reason or "canceled")

        task = asyncio.ensure_future(aw)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for pending in (task, waiter):
                if not pending.done():
                    pending.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await pending

        if task.cancelled():
            raise PipelineCancelled(self.reason or "canceled")
        return task.result()
