import asyncio
from typing import Optional

from backend import RelayBackend
from broadcast import is_writable
from logging_config import get_logger
from message_types import PING, make_frame

logger = get_logger(__name__)


class LivenessMonitor:
    """Periodically pings every connection and drops the ones that stopped answering.

    Each sweep clears the liveness flag and sends a PING; any inbound frame
    sets it again. A connection whose flag is still clear at the next sweep is
    terminated, so a silent peer is gone within two intervals.

    With ``reap_silent`` off, half-open detection is left to the server's
    protocol-level pings and only connections whose transport is already
    closed are reaped. Idle clients that never answer PING frames then stay.
    """

    def __init__(self, backend: RelayBackend, interval: float, reap_silent: bool = True):
        self.backend = backend
        self.interval = interval
        self.reap_silent = reap_silent
        self._task: Optional[asyncio.Task] = None

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())
            logger.info(f"Liveness monitor started (interval: {self.interval}s, reap silent: {self.reap_silent})")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Liveness monitor stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.sweep()
            except Exception as e:
                logger.error(f"Liveness sweep failed: {e}", exc_info=True)

    def _is_dead(self, connection) -> bool:
        if not is_writable(connection.websocket):
            return True
        return self.reap_silent and not connection.is_alive

    async def sweep(self) -> int:
        """Run one heartbeat cycle. Returns the number of connections terminated."""
        registry = self.backend.registry
        terminated = 0
        pinged = []
        for connection in registry.all():
            if self._is_dead(connection):
                logger.info(f"Terminating dead connection: {connection.client_id}")
                await self.backend.terminate(connection)
                terminated += 1
                continue
            registry.mark_alive(connection, False)
            pinged.append(connection)

        # PINGs go out concurrently; each send is bounded by the broadcaster timeout
        if pinged:
            ping = make_frame(PING)
            await asyncio.gather(*(self.backend.broadcaster.send(connection, ping) for connection in pinged))
        logger.debug(f"Liveness sweep done: {len(pinged)} pinged, {terminated} terminated")
        return terminated
