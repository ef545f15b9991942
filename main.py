"""
FastAPI应用主入口
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import user
from api.routes import blog
from api.routes import ws as ws_routes
from api.middleware import RequestIDMiddleware, LoggingMiddleware
from application.services.realtime_hub import RealtimeHub
from core.config import settings
from core.exceptions import register_exception_handlers
from core.response import success_response, utc_isoformat
from core.logging_config import get_logger, configure_logging
from infrastructure.database import create_tables, dispose_engine
from infrastructure.realtime.connection_manager import ConnectionManager
from infrastructure.realtime.event_channel import InMemoryEventChannel


# 初始化日志：在入口处显式配置，避免模块导入时的副作用
configure_logging()
logger = get_logger(__name__)


def build_realtime_hub() -> RealtimeHub:
    return RealtimeHub(
        connections=ConnectionManager(
            queue_max=settings.realtime.send_queue_max,
            overflow_policy=settings.realtime.overflow_policy,
        ),
        channel=InMemoryEventChannel(maxsize=settings.realtime.channel_max),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    # 启动时创建数据库表（仅开发环境）
    if settings.DEBUG:
        await create_tables()
        logger.info("database_initialized", message="Database tables created (development)")

    # 初始化实时通信（单进程内存 Hub）
    hub = build_realtime_hub()
    await hub.start()
    app.state.realtime_hub = hub
    logger.info("realtime_initialized")

    yield

    await hub.stop()
    app.state.realtime_hub = None
    await dispose_engine()
    logger.info("application_shutdown", message="Application shutdown")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
    description="BLOGGY：博客 CRUD + 实时事件推送",
)

# 添加中间件（注意顺序：从下往上执行）
# 1. Request ID中间件（最先执行，为后续中间件提供request_id）
app.add_middleware(RequestIDMiddleware)

# 2. 日志中间件（依赖request_id）
app.add_middleware(LoggingMiddleware)

# 3. CORS中间件
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 注册全局异常处理器
register_exception_handlers(app)


# 注册路由
app.include_router(user.router, prefix="/api/v1")
app.include_router(blog.router, prefix="/api/v1")
app.include_router(ws_routes.router, prefix="/api/v1")


# 根路径
@app.get("/", tags=["Root"])
async def root():
    """API根路径"""
    return success_response(
        data={
            "name": settings.PROJECT_NAME,
            "version": settings.VERSION,
            "status": "running",
            "timestamp": utc_isoformat(datetime.now(timezone.utc)),
            "docs": "/docs",
        },
        message="BLOGGY API Server is running",
    )


# 健康检查
@app.get("/health", tags=["Health"])
async def health_check():
    """健康检查端点"""
    return success_response(data={"status": "healthy"}, message="OK")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info"
    )
