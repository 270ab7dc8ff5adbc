"""FastAPI application entry point."""

import asyncio
import json
import logging
import traceback
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import TimeoutError as SQLAlchemyTimeoutError

from .config import settings
from .database import async_session_maker, create_all_tables, warmup_connection_pool
from .routers import (
    auth_router,
    boards_router,
    cards_router,
    lists_router,
    notifications_router,
    users_router,
)
from .services.auth_service import resolve_token_user
from .services.redis_service import redis_service
from .services.reindex_service import PositionConflictError, ReorderTimeoutError
from .websocket import BoardRealtime, ConnectionManager, PresenceTracker, check_board_access

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Connection configuration
RECEIVE_TIMEOUT = 45
SERVER_PING_INTERVAL = 30
REORDER_RETRY_AFTER = 1


def build_realtime() -> BoardRealtime:
    """Create the realtime gateway with its own presence tracker."""
    return BoardRealtime(ConnectionManager(redis_service), PresenceTracker())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown tasks."""
    if settings.is_sqlite:
        logger.info("SQLite database, creating tables from metadata...")
        await create_all_tables()
    else:
        logger.info("Warming up database connection pool...")
        await warmup_connection_pool()
        logger.info("Database connection pool ready")

    realtime: BoardRealtime = app.state.realtime

    if settings.redis_enabled:
        logger.info("Connecting to Redis...")
        try:
            await redis_service.connect()
            await realtime.manager.initialize_redis()
            await redis_service.start_listening()
            logger.info("Redis pub/sub listener started")
        except Exception as e:
            if settings.redis_required:
                logger.error(f"Redis connection failed and REDIS_REQUIRED=true: {e}")
                raise RuntimeError(
                    f"Redis is required for multi-worker deployment but connection failed: {e}"
                )
            logger.warning(f"Redis connection failed, running in single-worker mode: {e}")

    yield

    logger.info("Disconnecting from Redis...")
    await redis_service.disconnect()


app = FastAPI(
    title="EpiTrello API",
    description="Collaborative boards with lists, cards and real-time updates",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)
app.state.realtime = build_realtime()

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report request validation failures as 400 rather than 422."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(PositionConflictError)
async def position_conflict_handler(request: Request, exc: PositionConflictError):
    """A reorder or move collided with a concurrent change. The client refetches and retries."""
    logger.info(f"Position conflict on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": "Position conflict"},
    )


@app.exception_handler(ReorderTimeoutError)
async def reorder_timeout_handler(request: Request, exc: ReorderTimeoutError):
    """Return 503 with Retry-After when a reorder exceeds its deadline."""
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Reorder timed out. Please retry.", "retry_after": REORDER_RETRY_AFTER},
        headers={"Retry-After": str(REORDER_RETRY_AFTER)},
    )


# Database pool exhaustion handler - return 503 so clients can retry
@app.exception_handler(SQLAlchemyTimeoutError)
async def db_pool_exhausted_handler(request: Request, exc: SQLAlchemyTimeoutError):
    """Handle database connection pool exhaustion with 503 Service Unavailable."""
    logger.warning(f"Database pool exhausted on {request.method} {request.url}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Service temporarily unavailable. Please retry.", "retry_after": 5},
        headers={"Retry-After": "5"},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Log all unhandled exceptions with full traceback."""
    logger.error(
        f"Unhandled exception on {request.method} {request.url}: "
        f"{type(exc).__name__}: {exc}\n{traceback.format_exc()}"
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


app.include_router(auth_router)
app.include_router(users_router)
app.include_router(boards_router)
app.include_router(lists_router)
app.include_router(cards_router)
app.include_router(notifications_router)


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    realtime: BoardRealtime = app.state.realtime
    return {
        "status": "healthy",
        "redis": await redis_service.health_check(),
        "websocket": {
            "connections": realtime.manager.total_connections,
            "rooms": realtime.manager.total_rooms,
        },
        "presence": realtime.presence.stats(),
    }


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, token: Optional[str] = None):
    """
    WebSocket endpoint for board collaboration.

    Authentication is done via query parameter since browsers cannot set
    headers on the WebSocket handshake.

    Usage:
        ws://localhost:8000/ws?token=<jwt_token>
    """
    if not token:
        await websocket.close(code=4001, reason="Authentication required")
        return

    async with async_session_maker() as db:
        user = await resolve_token_user(db, token)
    if user is None:
        logger.debug("WebSocket connection with invalid token")
        await websocket.close(code=4001, reason="Invalid token")
        return

    realtime: BoardRealtime = websocket.app.state.realtime
    connection = await realtime.manager.connect(websocket, user.id, user.username, user.avatar_url)
    if connection is None:
        return  # Connection limit reached

    message_timestamps: list[float] = []

    async def server_ping_task():
        """Send periodic pings so idle proxies keep the socket open."""
        try:
            while True:
                await asyncio.sleep(SERVER_PING_INTERVAL)
                if not await realtime.manager.send_personal(connection, {"type": "ping", "data": {}}):
                    break
        except asyncio.CancelledError:
            pass

    ping_task = asyncio.create_task(server_ping_task())

    try:
        while True:
            try:
                raw_message = await asyncio.wait_for(websocket.receive_text(), timeout=RECEIVE_TIMEOUT)
            except asyncio.TimeoutError:
                # Quiet client: ping once more before giving up
                if not await realtime.manager.send_personal(connection, {"type": "ping", "data": {}}):
                    break
                try:
                    raw_message = await asyncio.wait_for(websocket.receive_text(), timeout=10)
                except asyncio.TimeoutError:
                    logger.info(f"Connection timeout for user: {user.id}")
                    break

            current_time = asyncio.get_running_loop().time()
            message_timestamps[:] = [
                t for t in message_timestamps if current_time - t < settings.ws_rate_limit_window
            ]
            if len(message_timestamps) >= settings.ws_rate_limit_messages:
                logger.warning(f"Rate limit exceeded for user {user.id}")
                await realtime.send_error(connection, "RATE_LIMIT", "Too many messages, slow down")
                continue
            message_timestamps.append(current_time)

            if len(raw_message) > settings.ws_max_message_size:
                await realtime.send_error(
                    connection,
                    "MESSAGE_TOO_LARGE",
                    f"Message exceeds maximum size of {settings.ws_max_message_size} bytes",
                )
                continue

            try:
                data = json.loads(raw_message)
            except json.JSONDecodeError:
                await realtime.send_error(connection, "INVALID_JSON", "Invalid JSON format")
                continue
            if not isinstance(data, dict):
                await realtime.send_error(connection, "INVALID_MESSAGE", "Expected a JSON object")
                continue

            await realtime.route_incoming_message(connection, data, authorizer=check_board_access)

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnect for user: {user.id}")
    except Exception as e:
        logger.error(f"WebSocket exception for user {user.id}: {e}")
    finally:
        ping_task.cancel()
        try:
            await ping_task
        except asyncio.CancelledError:
            pass
        await realtime.handle_disconnect(connection)
