from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from typing import Dict, Any
import json
import logging
from datetime import datetime, timezone

from app.database import AsyncSessionLocal, create_db_and_tables
from app.api import alerts, auth, emergency, ledger, profile, trips
from app.config import settings, validate_settings
from app.core.exceptions import BackendUnavailableError, RecordNotFoundError
from app.services import build_services

logger = logging.getLogger(__name__)

# Lifespan manager for startup/shutdown events
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    validate_settings(settings)
    await create_db_and_tables()
    app.state.services = build_services(settings, AsyncSessionLocal)
    logger.info("Application starting up")
    yield
    # Shutdown
    logger.info("Application shutting down")

app = FastAPI(
    title="Safe Traveler Buddy API",
    description="Emergency alerting, trips and safety alerts for travelers",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(BackendUnavailableError)
async def backend_unavailable_handler(request: Request, exc: BackendUnavailableError):
    logger.error(f"Backend unavailable: {exc}")
    return JSONResponse(status_code=503, content={"detail": str(exc)})

@app.exception_handler(RecordNotFoundError)
async def record_not_found_handler(request: Request, exc: RecordNotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})

# Include routers
app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(profile.router, prefix="/api/profile", tags=["Profile"])
app.include_router(emergency.router, prefix="/api/emergency", tags=["Emergency"])
app.include_router(trips.router, prefix="/api/trips", tags=["Trips"])
app.include_router(trips.check_in_router, prefix="/api/check-ins", tags=["Check-ins"])
app.include_router(alerts.router, prefix="/api/alerts", tags=["Safety Alerts"])
app.include_router(ledger.router, prefix="/api/blockchain", tags=["Ledger"])

# WebSocket connection manager
class ConnectionManager:
    def __init__(self):
        self.active_connections: Dict[str, WebSocket] = {}

    async def connect(self, websocket: WebSocket, client_id: str):
        await websocket.accept()
        self.active_connections[client_id] = websocket
        logger.info(f"WebSocket connected: {client_id}")

    def disconnect(self, client_id: str):
        if client_id in self.active_connections:
            del self.active_connections[client_id]
            logger.info(f"WebSocket disconnected: {client_id}")

    async def broadcast(self, data: dict[str, Any]):
        disconnected = []
        # Snapshot: clients may connect or drop while we await a send
        for client_id, websocket in list(self.active_connections.items()):
            try:
                await websocket.send_text(json.dumps(data, default=str))
            except Exception as e:
                logger.warning(f"Error broadcasting to {client_id}: {e}")
                disconnected.append(client_id)

        # Clean up disconnected clients
        for client_id in disconnected:
            self.disconnect(client_id)

manager = ConnectionManager()

@app.websocket("/ws/{client_id}")
async def websocket_endpoint(websocket: WebSocket, client_id: str):
    await manager.connect(websocket, client_id)
    try:
        while True:
            await websocket.receive_text()
            # Echo back for heartbeat
            await websocket.send_text(json.dumps({
                "type": "heartbeat",
                "timestamp": datetime.now(timezone.utc).isoformat()
            }))
    except WebSocketDisconnect:
        manager.disconnect(client_id)
    except Exception as e:
        logger.error(f"WebSocket error for {client_id}: {e}")
        manager.disconnect(client_id)

@app.get("/")
async def root():
    return {
        "message": "Safe Traveler Buddy API",
        "status": "active",
        "version": "1.0.0",
        "timestamp": datetime.now(timezone.utc).isoformat()
    }

# Health check endpoint
@app.get("/health")
async def health_check() -> dict[str, Any]:
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "active_connections": len(manager.active_connections)
    }

# Make manager available to routers
app.state.websocket_manager = manager
