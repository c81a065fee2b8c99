import uvicorn
from constants import HOST, PORT, LOG_LEVEL, LOG_FILE, HEARTBEAT_INTERVAL, PROTOCOL_PINGS
from logging_config import setup_logging

# Setup logging before importing app
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)

from app import app
from logging_config import get_logger

logger = get_logger(__name__)


class RelayServer(uvicorn.Server):
    """uvicorn server that says goodbye to every client before closing connections."""

    async def shutdown(self, sockets=None):
        logger.info("Shutting down collaboration server...")
        await self.config.app.state.relay.shutdown()
        await super().shutdown(sockets=sockets)


def main():
    ping_interval = HEARTBEAT_INTERVAL if PROTOCOL_PINGS else None
    config = uvicorn.Config(
        app,
        host=HOST,
        port=PORT,
        log_config=None,
        ws_ping_interval=ping_interval,
        ws_ping_timeout=ping_interval,
    )
    logger.info(f"Collaboration server running on {HOST}:{PORT}")
    logger.info(f"WebSocket URL: ws://{HOST}:{PORT}")
    logger.info(f"Health check: http://{HOST}:{PORT}/health")
    logger.info(f"Statistics: http://{HOST}:{PORT}/stats")
    RelayServer(config).run()


if __name__ == "__main__":
    main()
