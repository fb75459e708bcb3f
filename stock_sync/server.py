"""FastAPI status server with the sync scheduler embedded.

Exposes health, statistics and a manual sync trigger while the background
scheduler runs cycles on its interval.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, Request, HTTPException, BackgroundTasks
from fastapi.responses import JSONResponse

from .scheduler import create_background_scheduler, exit_immediately
from .services.reconciler import StockReconciler
from .utils.config import get_config
from .utils.exceptions import TransportError
from .utils.logger import get_server_logger

logger = get_server_logger()


def _run_manual_cycle(reconciler: StockReconciler):
    """Run a triggered cycle; the result lands in ``get_stats()``."""
    try:
        result = reconciler.run_cycle()
        if result.rejected:
            logger.warning("Manual sync rejected: a sync is already in progress")
        else:
            logger.info(
                f"Manual sync finished: {result.updates_applied} updates applied, "
                f"{result.error_count} errors"
            )
    except TransportError as e:
        logger.error(f"Manual sync aborted, catalog unavailable: {e.message}")
    except Exception as e:
        logger.error(f"Manual sync failed: {str(e)}", exc_info=True)


def create_app(
    reconciler: Optional[StockReconciler] = None,
    start_scheduler: bool = True,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        reconciler: Reconciler to serve; built from config on startup if None.
        start_scheduler: Check connections and start the background
            scheduler in the lifespan.
    """
    config = get_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage startup / shutdown of the application."""
        logger.info("=" * 60)
        logger.info("IPOS → WooCommerce Stock Sync Server Starting")
        logger.info("=" * 60)
        logger.info(f"Environment:          {config.env.environment}")
        logger.info(f"Port:                 {config.env.port}")
        logger.info(f"Sync interval:        {config.env.sync_interval_minutes} minutes")
        logger.info("=" * 60)

        app.state.reconciler = reconciler or StockReconciler(config=config)
        scheduler = None

        if start_scheduler:
            # ConnectivityError propagates and aborts startup
            app.state.reconciler.test_connections()
            scheduler = create_background_scheduler(app.state.reconciler)
            scheduler.start()
            logger.info("Sync scheduler started")

        yield

        logger.info("Shutting down sync scheduler...")
        app.state.reconciler.request_stop()
        if scheduler is not None:
            scheduler.shutdown(wait=False)

        grace = config.scheduler.shutdown_grace_period
        idle = await asyncio.to_thread(app.state.reconciler.wait_until_idle, grace)
        if not idle:
            logger.warning(f"Sync still running after {grace}s grace period; exiting anyway")
            exit_immediately(0)
        if reconciler is None:
            app.state.reconciler.close()
        logger.info("Server shut down.")

    app = FastAPI(
        title="IPOS-WooCommerce Stock Sync",
        description="Status and control surface for the stock sync service",
        version="1.0.0",
        lifespan=lifespan,
    )

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "service": "IPOS-WooCommerce Stock Sync",
            "version": "1.0.0",
            "status": "running"
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint for monitoring."""
        return {
            "status": "healthy",
            "timestamp": datetime.utcnow().isoformat(),
            "environment": config.env.environment
        }

    @app.get("/stats")
    async def stats(request: Request):
        """Cumulative sync statistics and current state."""
        return request.app.state.reconciler.get_stats()

    @app.post("/sync")
    async def trigger_sync(request: Request, background_tasks: BackgroundTasks):
        """Queue one cycle in the background; 409 if a cycle is running."""
        reconciler = request.app.state.reconciler
        if reconciler.is_running:
            raise HTTPException(status_code=409, detail="Sync already in progress")

        background_tasks.add_task(_run_manual_cycle, reconciler)
        return JSONResponse(
            status_code=202,
            content={"status": "accepted", "message": "Sync triggered"}
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """Custom HTTP exception handler."""
        logger.warning(f"HTTP {exc.status_code}: {exc.detail}")
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": exc.detail,
                "status_code": exc.status_code
            }
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """General exception handler for unexpected errors."""
        logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "message": str(exc) if not config.is_production else "An error occurred"
            }
        )

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "stock_sync.server:create_app",
        factory=True,
        host="0.0.0.0",
        port=get_config().env.port,
    )
