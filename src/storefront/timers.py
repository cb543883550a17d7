"""Отменяемые таймеры обратного отсчёта (повторная отправка OTP, блокировка PIN)."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable, Optional


logger = logging.getLogger(__name__)


class Countdown:
    """
    Обратный отсчёт по одному тику за ``interval`` секунд.

    Таймер принадлежит своему сценарию: сценарий обязан вызвать ``cancel()``
    при завершении, либо использовать таймер как ``async with``.
    """

    def __init__(
        self,
        ticks: int,
        *,
        interval: float = 1.0,
        on_tick: Optional[Callable[[int], Any]] = None,
        on_finish: Optional[Callable[[], Any]] = None,
    ) -> None:
        self.ticks = ticks
        self.remaining = ticks
        self.interval = interval
        self._on_tick = on_tick
        self._on_finish = on_finish
        self._task: Optional[asyncio.Task] = None

    @property
    def finished(self) -> bool:
        return self.remaining <= 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        self.cancel()
        if self.finished:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        self._task.add_done_callback(_log_failure)

    def reset(self, ticks: Optional[int] = None) -> None:
        self.cancel()
        if ticks is not None:
            self.ticks = ticks
        self.remaining = self.ticks

    def cancel(self) -> None:
        task, self._task = self._task, None
        # on_finish может закрыть сценарий изнутри собственного таймера
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def tick(self) -> None:
        if self.finished:
            return
        self.remaining -= 1
        if self._on_tick is not None:
            await _maybe_await(self._on_tick(self.remaining))
        if self.remaining == 0 and self._on_finish is not None:
            await _maybe_await(self._on_finish())

    async def _run(self) -> None:
        while not self.finished:
            await asyncio.sleep(self.interval)
            await self.tick()

    async def __aenter__(self) -> "Countdown":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.cancel()


def _log_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Ошибка в таймере обратного отсчёта: %s", exc, exc_info=exc)


async def _maybe_await(result: Any) -> None:
    if inspect.isawaitable(result):
        await result
