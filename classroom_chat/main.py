import logging
from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from classroom_chat.config import settings
from classroom_chat.database import Base, SessionLocal, engine
from classroom_chat.middlewares import LoggingMiddleware, register_exception_handlers
from classroom_chat.redis_client import close_redis, get_redis
from classroom_chat.routes import admin, messages, presence, rooms
from classroom_chat.utils.health_checks import HealthCheckManager, HealthStatus


def setup_logging():
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.debug else logging.WARNING
    )


setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database connected and tables ready")
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        raise

    try:
        redis = await get_redis()
        await redis.ping()
        logger.info("Redis connected")
    except Exception as e:
        logger.error(f"Redis connection failed: {e}")
        raise

    yield

    await close_redis()
    await engine.dispose()
    logger.info("Connections closed")


def get_health_manager() -> HealthCheckManager:
    return HealthCheckManager(SessionLocal, get_redis)


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        debug=settings.debug,
        version=settings.version,
        description="Chat rooms, memberships, messages and presence for course and study groups",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[origin.strip() for origin in settings.cors_origins.split(",")],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)

    register_exception_handlers(app)

    app.include_router(rooms.router)
    app.include_router(messages.router)
    app.include_router(presence.router)
    app.include_router(admin.router)

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "message": f"Welcome to {settings.app_name}",
            "version": settings.version,
            "status": "running"
        }

    @app.get("/health")
    async def health_check(manager: HealthCheckManager = Depends(get_health_manager)):
        """Health check endpoint"""
        report = await manager.run_checks()
        report.update({"service": settings.app_name, "version": settings.version})
        status_code = 503 if report["status"] == HealthStatus.UNHEALTHY.value else 200
        return JSONResponse(status_code=status_code, content=report)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "classroom_chat.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
