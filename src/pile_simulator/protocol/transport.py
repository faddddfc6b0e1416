"""Driver & WebSocket transport — the single writer of one pile.

Everything that touches the pile goes through one ``asyncio.Queue`` inbox:

  ticker task      ── every polling interval ──▶ ┐
  receive task     ── inbound frames ─────────▶ ├─▶ inbox ─▶ consumer ─▶ pile
  control API      ── commands (+ future) ────▶ ┘

The consumer applies items strictly in arrival order and sends the frames
each item produced before taking the next one, so a pile never sees
concurrent mutation and its outbound frames keep transition order.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterable, Awaitable, Callable, TypeVar

from websockets.asyncio.client import connect
from websockets.exceptions import ConnectionClosed, ConnectionClosedError, WebSocketException

from pile_simulator.config.transport import WebSocketConfig
from pile_simulator.engine.faults import FaultInjector
from pile_simulator.engine.pile import Pile
from pile_simulator.errors import PileSimulatorError
from pile_simulator.protocol.adapter import ProtocolAdapter

logger = logging.getLogger(__name__)

T = TypeVar("T")
Send = Callable[[str], Awaitable[None]]

_TICK = "tick"
_FRAME = "frame"
_COMMAND = "command"
_STOP = "stop"


async def _discard(frame: str) -> None:
    logger.debug("no transport attached, dropping %s", frame)


def next_tick_index(start: float, now: float, interval: float, previous: int) -> int:
    """Index n of the next tick deadline ``start + n × interval`` after ``now``.

    Deadlines sit on a fixed grid, so wake-up latency never accumulates; a
    deadline already missed is skipped rather than fired late.
    """
    return max(previous + 1, int((now - start) // interval) + 1)


class PileDriver:
    """Periodic driver of one pile, fed by a single-consumer inbox.

    Parameters
    ----------
    adapter : ProtocolAdapter
        Adapter wrapping the pile this driver owns.
    injector : FaultInjector, optional
        Consulted once per tick while a session is charging.
    send : async callable, optional
        Delivers one outbound frame.  Frames are dropped until one is attached.
    """

    def __init__(
        self,
        adapter: ProtocolAdapter,
        injector: FaultInjector | None = None,
        send: Send = _discard,
    ) -> None:
        self._adapter = adapter
        self._pile = adapter.pile
        self._injector = injector
        self._send = send
        self._inbox: asyncio.Queue[tuple[str, Any]] = asyncio.Queue()

    @property
    def pile(self) -> Pile:
        return self._pile

    @property
    def adapter(self) -> ProtocolAdapter:
        return self._adapter

    def attach(self, send: Send) -> None:
        self._send = send

    # ── Producers ───────────────────────────────────────────────────────

    async def feed(self, raw: str | bytes) -> None:
        """Queue one inbound frame."""
        await self._inbox.put((_FRAME, raw))

    async def tick(self) -> None:
        """Queue one tick out of schedule."""
        await self._inbox.put((_TICK, None))

    async def execute(self, operation: Callable[[Pile], T]) -> T:
        """Run ``operation(pile)`` on the driver's turn and return its result.

        Exceptions raised by the operation are re-raised here.  Requires
        ``run`` to be active on the same event loop.
        """
        future: asyncio.Future[T] = asyncio.get_running_loop().create_future()
        await self._inbox.put((_COMMAND, (operation, future)))
        return await future

    def stop(self) -> None:
        self._inbox.put_nowait((_STOP, None))

    # ── Consumer ────────────────────────────────────────────────────────

    async def run(self, receive: AsyncIterable[str | bytes] | None = None) -> None:
        """Drive the pile until ``stop`` is called or ``receive`` ends."""
        producers = [asyncio.create_task(self._tick_forever())]
        if receive is not None:
            producers.append(asyncio.create_task(self._pump(receive)))
        logger.info(
            "driving pile %s every %.3f s (simulated step %s)",
            self._pile.pile_id,
            self._pile.clock.tick_interval.total_seconds(),
            self._pile.clock.simulated_step,
        )
        try:
            await self._consume()
        finally:
            for task in producers:
                task.cancel()
            await asyncio.gather(*producers, return_exceptions=True)

    async def _consume(self) -> None:
        while True:
            kind, payload = await self._inbox.get()
            if kind == _STOP:
                return
            try:
                if kind == _TICK:
                    frames = self._on_tick()
                elif kind == _FRAME:
                    frames = self._adapter.handle_inbound(payload)
                else:
                    frames = self._on_command(*payload)
            except (PileSimulatorError, ArithmeticError) as exc:
                logger.error("%s on pile %s failed, continuing: %r", kind, self._pile.pile_id, exc)
                frames = self._adapter.drain()
            try:
                for frame in frames:
                    await self._send(frame)
            except ConnectionClosed as exc:
                logger.error("cannot send, connection closed: %s", exc)
                return

    def _on_tick(self) -> list[str]:
        frames = self._adapter.handle_tick()
        if (
            self._injector is not None
            and self._pile.allows_interruption
            and self._pile.active is not None
            and self._injector.should_interrupt(self._pile.clock.simulated_step)
        ):
            self._pile.interrupt()
            frames += self._adapter.drain()
        return frames

    def _on_command(self, operation: Callable[[Pile], Any], future: asyncio.Future) -> list[str]:
        try:
            result = operation(self._pile)
        except Exception as exc:
            if not future.done():
                future.set_exception(exc)
        else:
            if not future.done():
                future.set_result(result)
        return self._adapter.drain()

    async def _tick_forever(self) -> None:
        loop = asyncio.get_running_loop()
        interval = self._pile.clock.tick_interval.total_seconds()
        start = loop.time()
        index = 0
        while True:
            index = next_tick_index(start, loop.time(), interval, index)
            await asyncio.sleep(max(0.0, start + index * interval - loop.time()))
            await self._inbox.put((_TICK, None))

    async def _pump(self, receive: AsyncIterable[str | bytes]) -> None:
        try:
            async for raw in receive:
                await self._inbox.put((_FRAME, raw))
            logger.info("connection closed by peer")
        except ConnectionClosedError as exc:
            logger.error("connection lost: %s", exc)
        finally:
            await self._inbox.put((_STOP, None))


async def run_websocket(driver: PileDriver, config: WebSocketConfig) -> None:
    """Connect to the dispatch service, register, and drive the pile until the connection ends."""
    try:
        connection = await connect(config.url, open_timeout=config.connect_timeout_s)
    except (OSError, TimeoutError, WebSocketException) as exc:
        logger.error("cannot connect to %s: %s", config.url, exc)
        return

    async with connection:
        logger.info("connected to %s", config.url)
        driver.attach(connection.send)
        await connection.send(driver.adapter.registration())
        await driver.run(receive=connection)
