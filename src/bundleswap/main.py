"""Main entry point - runs the escrow API."""

import asyncio
import logging
import signal

import uvicorn

from bundleswap.api.app import create_app
from bundleswap.config import get_settings
from bundleswap.ledger.database import close_db, get_session_factory, init_db
from bundleswap.registry.factory import create_registry_directory
from bundleswap.swap.orchestrator import SwapOrchestrator

logger = logging.getLogger(__name__)


class Application:
    """Main application: database, registries, orchestrator and API server."""

    def __init__(self):
        self.settings = get_settings()
        self.server = None
        self._shutdown_event = asyncio.Event()

    async def start(self):
        """Start all services."""
        # Configure logging
        log_level = logging.DEBUG if self.settings.debug else logging.INFO
        logging.basicConfig(
            level=log_level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )

        logger.info("Starting bundleswap...")
        logger.info(f"Environment: {self.settings.environment}")
        if self.settings.dry_run:
            logger.warning("DRY RUN: asset registries are in-memory and reset on restart")

        # Initialize database
        await init_db()
        logger.info("Database initialized")

        orchestrator = SwapOrchestrator.from_settings(
            session_factory=get_session_factory(),
            directory=create_registry_directory(self.settings),
            settings=self.settings,
        )
        logger.info(f"Escrow custody identity: {orchestrator.custody_identity}")

        api_task = asyncio.create_task(self._run_api(orchestrator))
        logger.info("API task created")

        # Wait for shutdown signal or for the server to stop on its own
        shutdown_task = asyncio.create_task(self._shutdown_event.wait())
        await asyncio.wait({api_task, shutdown_task}, return_when=asyncio.FIRST_COMPLETED)

        if self.server is not None:
            self.server.should_exit = True
        shutdown_task.cancel()
        await asyncio.gather(api_task, shutdown_task, return_exceptions=True)

        await self._cleanup()

    async def _run_api(self, orchestrator: SwapOrchestrator):
        """Run the FastAPI server."""
        try:
            app = create_app(orchestrator)
            config = uvicorn.Config(
                app,
                host=self.settings.api_host,
                port=self.settings.api_port,
                log_level="debug" if self.settings.debug else "info",
            )
            self.server = uvicorn.Server(config)
            logger.info(f"Starting API server on {self.settings.api_host}:{self.settings.api_port}")
            await self.server.serve()
        except asyncio.CancelledError:
            logger.info("API server cancelled")
        except Exception as e:
            logger.error(f"API error: {e}")
            raise

    async def _cleanup(self):
        """Cleanup resources."""
        logger.info("Cleaning up...")
        await close_db()
        logger.info("Cleanup complete")

    def shutdown(self):
        """Signal shutdown."""
        logger.info("Shutdown requested")
        self._shutdown_event.set()


def main():
    """Main entry point."""
    app = Application()

    # Setup signal handlers
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, app.shutdown)

    try:
        loop.run_until_complete(app.start())
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
    finally:
        loop.close()


if __name__ == "__main__":
    main()
