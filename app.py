from contextlib import asynccontextmanager
from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from routers.stats import stats_router
from backend import RelayBackend
from handlers import MessageRouter
from liveness import LivenessMonitor
from constants import CORS_ORIGINS, HEARTBEAT_INTERVAL, LOG_FILE, LOG_LEVEL, PROTOCOL_PINGS
from logging_config import get_logger, setup_logging

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)


async def websocket_endpoint(websocket: WebSocket):
    """One task per client: frames are handled strictly in the order they arrive."""
    relay: RelayBackend = websocket.app.state.relay
    router: MessageRouter = websocket.app.state.message_router

    await websocket.accept()
    connection = relay.connect(websocket)
    client_host = websocket.client.host if websocket.client else "unknown"
    logger.info(f"New client connected: {connection.client_id} from {client_host}")

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.info(f"WebSocket disconnected for connection {connection.client_id} (code: {message.get('code')})")
                break
            data = message.get("text")
            if data is None:
                data = message.get("bytes") or b""
            await router.dispatch(connection, data)
    except Exception as e:
        logger.error(f"WebSocket error for connection {connection.client_id}: {e}", exc_info=True)
    finally:
        await relay.disconnect(connection)


def create_app(heartbeat_interval: float = HEARTBEAT_INTERVAL, reap_silent: bool = not PROTOCOL_PINGS) -> FastAPI:
    relay = RelayBackend(send_timeout=heartbeat_interval)
    monitor = LivenessMonitor(relay, heartbeat_interval, reap_silent=reap_silent)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        monitor.start()
        try:
            yield
        finally:
            await monitor.stop()
            await relay.shutdown()

    app = FastAPI(title="Task Relay", lifespan=lifespan)
    app.state.relay = relay
    app.state.message_router = MessageRouter(relay)
    app.state.liveness_monitor = monitor

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_api_websocket_route("/", websocket_endpoint)
    app.include_router(stats_router)

    logger.info("FastAPI application initialized")
    return app


app = create_app()
