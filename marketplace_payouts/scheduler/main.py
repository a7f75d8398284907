"""
Main entry point for the standalone payout scheduler service.
"""

import asyncio
import signal

import structlog

from marketplace_payouts.core.database import init_database, close_database
from marketplace_payouts.core.logging import setup_logging
from .payout_scheduler import PayoutScheduler


logger = structlog.get_logger(__name__)


class SchedulerMain:
    """Runs the payout scheduler until a shutdown signal arrives."""

    def __init__(self):
        self.scheduler = None
        self.running = False
        self._stop_event = asyncio.Event()

    async def initialize(self):
        logger.info("Initializing scheduler service")
        await init_database()
        self.scheduler = PayoutScheduler()
        logger.info("Scheduler service initialized")

    async def start(self):
        logger.info("Starting scheduler service")
        self.running = True
        await self.scheduler.start()
        health_task = asyncio.create_task(self._periodic_health_check())
        try:
            await self._stop_event.wait()
        finally:
            health_task.cancel()
            await asyncio.gather(health_task, return_exceptions=True)

    async def stop(self):
        logger.info("Stopping scheduler service")
        self.running = False
        self._stop_event.set()
        if self.scheduler:
            await self.scheduler.stop()
        await close_database()
        logger.info("Scheduler service stopped")

    async def _periodic_health_check(self):
        while self.running:
            try:
                await asyncio.sleep(300)
                health = await self.scheduler.health_check()
                logger.info("Scheduler health check", healthy=health["healthy"], status=health["status"])

                if not health["healthy"]:
                    logger.warning("Restarting payout scheduler due to health check failure")
                    await self.scheduler.stop()
                    await self.scheduler.start()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Health check error", error=str(e))


async def main():
    """Run the scheduler service."""
    setup_logging()
    service = SchedulerMain()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, service._stop_event.set)
        except NotImplementedError:
            # Windows event loops do not support signal handlers
            pass

    try:
        await service.initialize()
        await service.start()
    except Exception as e:
        logger.error("Scheduler service failed", error=str(e))
        raise
    finally:
        await service.stop()


if __name__ == "__main__":
    asyncio.run(main())
