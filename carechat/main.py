import socketio
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from carechat.config import settings
from carechat.database import Database
from carechat.features.messages.router import router as chat_router
from carechat.features.messages.socket import sio, RoomBroadcaster
from carechat.features.messages.service import MessageService
from carechat.features.messages.locks import ConversationLockService
from carechat.features.notifications.router import router as notifications_router
from carechat.features.notifications.service import NotificationService
from carechat.features.internal.router import router as internal_router
from carechat.shared.schemas import ErrorResponse
from carechat.core.logging import logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan events for FastAPI application."""
    # Startup
    logger.info("Starting CareChat API...")
    await Database.connect_db()
    logger.info("Application started successfully")

    yield

    # Shutdown
    logger.info("Shutting down...")
    await app.state.message_service.flush_notifications()
    await Database.close_db()
    logger.info("Application shutdown complete")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    description="Realtime chat between patients, labs and phlebotomists",
    version="1.0.0",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Services; realtime pushes go through the Socket.IO rooms
broadcaster = RoomBroadcaster(sio)
app.state.message_service = MessageService(broadcaster=broadcaster, notifier=NotificationService())
app.state.lock_service = ConversationLockService(broadcaster=broadcaster)

# Register routers
app.include_router(chat_router, prefix=settings.API_V1_PREFIX)
app.include_router(notifications_router, prefix=settings.API_V1_PREFIX)
app.include_router(internal_router, prefix=settings.API_V1_PREFIX)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    logger.warning(f"HTTP {exc.status_code}: {exc.detail} - Path: {request.url.path}")
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(detail=exc.detail, status_code=exc.status_code).model_dump(),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Validation error: {exc.errors()} - Path: {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=jsonable_encoder(ErrorResponse(detail=exc.errors(), status_code=422)),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(detail="Internal server error", status_code=500).model_dump(),
    )


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": settings.APP_NAME,
        "version": "1.0.0",
        "docs": "/docs",
        "socket.io": "/socket.io",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "environment": settings.ENVIRONMENT,
    }


# Socket.IO in front of the API: /socket.io is served by sio, the rest by FastAPI
asgi_app = socketio.ASGIApp(sio, other_asgi_app=app)
