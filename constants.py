import os

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 3001))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

# Seconds between liveness sweeps
HEARTBEAT_INTERVAL = float(os.getenv("HEARTBEAT_INTERVAL", 30))

CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()]

DEFAULT_ROOM = "default"
UNKNOWN_USER = "Unknown User"

# Close code used when the relay drops a connection itself (going away)
CLOSE_GOING_AWAY = 1001

# Let uvicorn ping at the WebSocket protocol level every HEARTBEAT_INTERVAL.
# Standard clients answer those automatically, so frame-silent connections are
# only reaped by the liveness monitor when this is switched off.
PROTOCOL_PINGS = os.getenv("WS_PROTOCOL_PINGS", "true").strip().lower() not in ("0", "false", "no", "off")
