from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from roomchat.core.config import settings
from roomchat.core.error_handler import custom_exception_handler, unhandled_exception_handler
from roomchat.core.exceptions import BaseAPIException
from roomchat.core.log_config import logger

from roomchat.api.auth import router as auth_router
from roomchat.api.rooms import router as room_router
from roomchat.api.messages import router as message_router
from roomchat.api.ai import router as ai_router
from roomchat.api.websocket import router as websocket_router
from roomchat.globals import websocket_manager, session_registry
from roomchat.database.postgres import initialize_db, dispose_db
from roomchat.utils.datetime_utils import utc_now
from roomchat.utils.timing_middleware import TimingMiddleware


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        await initialize_db()
    except Exception as e:
        logger.critical(f"Database initialization failed: {e}")
        raise
    logger.info("Room chat service started.")
    yield
    await websocket_manager.close()
    await dispose_db()
    logger.info("Room chat service stopped.")

app = FastAPI(title="Room Chat", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(BaseAPIException, custom_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)
app.add_middleware(TimingMiddleware)

app.include_router(auth_router)
app.include_router(room_router)
app.include_router(message_router)
app.include_router(ai_router)
app.include_router(websocket_router)


@app.get("/api/health", tags=["health"])
async def health():
    return {
        "status": "ok",
        "timestamp": utc_now().isoformat(),
        "connections": len(session_registry),
    }
