"""Periodic flushing of buffered messages to the log files."""

from __future__ import annotations

import asyncio

from ..logging_setup import log


class BotLifecycleMixin:
    async def _ensure_flush_task(self):
        if self._flush_task and not self._flush_task.done():
            return
        self._flush_task = asyncio.create_task(self._flush_loop())

    async def _flush_loop(self):
        interval = max(5, int(self.config.log_flush_interval_sec))
        try:
            while True:
                await asyncio.sleep(interval)
                await self.flush_logs()
        except asyncio.CancelledError:
            pass
        finally:
            self._flush_task = None

    async def flush_logs(self) -> int:
        """Flush buffered messages; failures stay buffered for the next run."""
        try:
            written = await self.store.flush()
        except Exception as e:
            log.error(f"Log flush failed: {e}")
            return 0
        pending = self.store.pending_count()
        if written or pending:
            log.info(f"Flushed {written} message(s) to {self.config.log_dir} ({pending} still buffered)")
        return written

    async def shutdown(self):
        """Stop the flush loop and write out whatever is still buffered."""
        task = self._flush_task
        self._flush_task = None
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self.flush_logs()
