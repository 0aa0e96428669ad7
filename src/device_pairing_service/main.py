"""
Device Pairing Service - FastAPI application entry point.
"""

import argparse
import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from .config import PairingServiceConfig
from .service import PairingService
from .api import devices_router, settings_router, network_router, health_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout),
    ]
)
logger = logging.getLogger(__name__)


def create_app(
    config: Optional[PairingServiceConfig] = None,
    service: Optional[PairingService] = None
) -> FastAPI:
    """Build the FastAPI app around one PairingService instance."""
    config = config or PairingServiceConfig.from_env()
    service = service or PairingService.create(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan context manager for startup and shutdown events."""
        # Add file handler if configured
        if config.log_file:
            file_handler = logging.FileHandler(config.log_file)
            file_handler.setFormatter(
                logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
            )
            logging.getLogger().addHandler(file_handler)
            logger.info(f"Logging to file: {config.log_file}")

        # Startup
        logger.info("=" * 60)
        logger.info(f"{config.app_name} v{config.app_version}")
        logger.info("=" * 60)
        logger.info(f"Host: {config.host}:{config.port}")

        state = service.start_announcing()
        logger.info(f"Announcer state: {state.value}")

        logger.info("=" * 60)
        logger.info("Pairing service ready - devices can now connect")
        logger.info("=" * 60)

        yield

        # Shutdown
        logger.info("Shutting down pairing service")
        await service.shutdown()

    app = FastAPI(
        title=config.app_name,
        description="LAN device pairing and session registry",
        version=config.app_version,
        lifespan=lifespan,
    )
    app.state.service = service

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register routers with /api prefix
    app.include_router(devices_router, prefix="/api")
    app.include_router(settings_router, prefix="/api")
    app.include_router(network_router, prefix="/api")
    app.include_router(health_router)

    return app


def main():
    """Run the Device Pairing Service."""
    config = PairingServiceConfig.from_env()

    parser = argparse.ArgumentParser(description="Device Pairing Service")
    parser.add_argument(
        "--port",
        type=int,
        default=config.port,
        help=f"Port to run the service on (default: {config.port})"
    )
    parser.add_argument(
        "--host",
        type=str,
        default=config.host,
        help=f"Host to bind to (default: {config.host})"
    )
    parser.add_argument(
        "--name",
        type=str,
        default=config.app_name,
        help="Application name advertised on the network"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=config.log_level,
        help=f"Logging level (default: {config.log_level})"
    )

    args = parser.parse_args()

    config.host = args.host
    config.port = args.port
    config.app_name = args.name
    config.log_level = args.log_level

    # Set log level
    logging.getLogger().setLevel(getattr(logging, args.log_level))

    logger.info(f"Starting {config.app_name} on {args.host}:{args.port}")

    uvicorn.run(
        create_app(config),
        host=args.host,
        port=args.port,
        log_level=args.log_level.lower(),
    )


if __name__ == "__main__":
    main()
