"""FastAPI应用主入口

通过应用工厂创建应用实例，配置中间件、路由、异常处理和生命周期事件
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from music_share.core.config import Settings, get_settings
from music_share.core.database import DatabaseManager
from music_share.core.logging import setup_logging
from music_share.core.redis import RedisManager
from music_share.features.files import FileService
from music_share.features.files import router as files_router
from music_share.features.files.storage import MediaStorageService
from music_share.shared.schemas import ErrorResponse, HealthCheckResponse


LIVENESS_MESSAGE = "Music Sharing server is running!"


def error_response(status_code: int, error: str, details: Optional[str] = None) -> JSONResponse:
    """构造统一格式的错误响应"""
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, details=details).model_dump(exclude_none=True)
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期管理

    启动时初始化表结构，关闭时释放数据库和Redis连接
    """
    state = app.state
    logger.info(f"正在启动 {state.settings.app_name} v{state.settings.app_version}...")

    try:
        await state.db_manager.init_schema()
        if not state.storage.configured:
            logger.warning("对象存储凭证未完整配置，上传将会失败")
        logger.info("应用启动完成")
    except Exception as e:
        logger.error(f"应用启动失败: {e}")
        raise

    yield

    logger.info("正在关闭应用...")
    try:
        await state.redis_manager.close()
        await state.db_manager.close()
        logger.info("应用关闭完成")
    except Exception as e:
        logger.error(f"应用关闭时出错: {e}")


def register_exception_handlers(app: FastAPI) -> None:
    """注册全局异常处理器

    所有错误都转换为 {"error": ..., "details": ...} 格式
    """

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        logger.warning(f"HTTP异常: {request.method} {request.url.path} {exc.status_code} - {exc.detail}")
        return error_response(exc.status_code, str(exc.detail), getattr(exc, "details", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.warning(f"请求参数错误: {request.method} {request.url.path}: {exc.errors()}")
        return error_response(400, "Invalid request", str(exc.errors()))

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """处理未捕获的异常，非调试模式下不暴露内部错误信息"""
        logger.error(f"未处理的异常: {type(exc).__name__}: {str(exc)}")
        debug = request.app.state.settings.debug
        return error_response(500, str(exc) if debug else "Internal server error")


def create_app(
    settings: Optional[Settings] = None,
    storage: Optional[MediaStorageService] = None
) -> FastAPI:
    """创建FastAPI应用

    配置只在这里构造一次，通过app.state传给各个依赖

    Args:
        settings: 应用配置，默认从环境变量读取
        storage: 对象存储服务，默认根据配置创建

    Returns:
        FastAPI: 应用实例
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="音乐文件分享服务：上传音频、生成分享链接、解析下载地址",
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan
    )

    app.state.settings = settings
    app.state.db_manager = DatabaseManager(settings)
    app.state.redis_manager = RedisManager(settings)
    app.state.storage = storage or MediaStorageService(settings)
    app.state.file_service = FileService(app.state.storage, app.state.redis_manager, settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    @app.get("/", response_class=PlainTextResponse, summary="存活检查")
    async def root() -> str:
        return LIVENESS_MESSAGE

    @app.get(
        "/health",
        response_model=HealthCheckResponse,
        summary="健康检查",
        description="检查数据库、Redis和存储服务的状态"
    )
    async def health_check(request: Request) -> JSONResponse:
        """健康检查端点

        Redis是可选的，未配置时不影响整体状态
        """
        state = request.app.state
        database_healthy = await state.db_manager.ping()
        redis_healthy = await state.redis_manager.ping()
        storage_healthy = state.storage.configured

        redis_ok = redis_healthy or state.redis_manager.redis_client is None
        overall_healthy = database_healthy and redis_ok and storage_healthy

        health_data = HealthCheckResponse(
            status="healthy" if overall_healthy else "unhealthy",
            timestamp=datetime.utcnow().isoformat(),
            version=state.settings.app_version,
            database=database_healthy,
            redis=redis_healthy,
            storage=storage_healthy
        )
        return JSONResponse(
            status_code=200 if overall_healthy else 503,
            content=health_data.model_dump()
        )

    app.include_router(files_router, prefix="/api", tags=["文件"])

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    setup_logging(settings)
    logger.info(f"启动开发服务器: {settings.app_name} v{settings.app_version}")

    uvicorn.run(
        "music_share.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info"
    )
