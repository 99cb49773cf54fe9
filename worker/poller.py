import asyncio
import logging

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

from app.core.config import settings
from app.services.engine import build_engine
from app.services.scheduler import MessageScheduler


log = logging.getLogger(__name__)


class Poller:
    """
    Fixed-period driver for MessageScheduler.run_tick.

    Ticks are serialized: the next sleep starts only after the previous tick
    returned. A crashed tick is logged and the loop keeps going.
    """

    def __init__(self, scheduler: MessageScheduler, *, interval_seconds: float = 60.0):
        self._scheduler = scheduler
        self._interval = interval_seconds
        self._task: asyncio.Task | None = None
        self.ticks = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        log.info("poller: started interval=%ss", self._interval)
        self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        log.info("poller: stopped after %d ticks", self.ticks)

    async def _loop(self) -> None:
        while True:
            try:
                await self._scheduler.run_tick()
            except Exception:
                log.exception("poller: tick crashed")
            self.ticks += 1
            await asyncio.sleep(self._interval)


async def main():
    logging.basicConfig(level=settings.log_level)

    engine = create_async_engine(settings.database_url, pool_pre_ping=True)
    Session = async_sessionmaker(engine, expire_on_commit=False)
    delivery = build_engine(Session, settings)

    poller = Poller(delivery.scheduler, interval_seconds=settings.poll_interval_seconds)
    poller.start()
    try:
        # runs until the process is cancelled
        await asyncio.Event().wait()
    finally:
        await poller.stop()
        await delivery.aclose()
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
