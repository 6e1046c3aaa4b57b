from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from civic_pulse import __version__
from civic_pulse.service import PulseService, build_service
from .routes import sentiment, alerts
from .scheduler import create_scheduler, start_scheduler, stop_scheduler
from .logging_config import setup_logging
from .response import success_response, error_response, ErrorCode


def create_app(service: Optional[PulseService] = None, start_scheduler_on_startup: bool = True) -> FastAPI:
    """
    创建 FastAPI 应用

    Args:
        service: 已装配的服务（None 时按环境变量装配）
        start_scheduler_on_startup: 是否在启动时运行阈值扫描调度器
    """
    service = service or build_service()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        scheduler = None
        if start_scheduler_on_startup:
            scheduler = create_scheduler(service)
            start_scheduler(scheduler)
        app.state.scheduler = scheduler
        yield
        if scheduler is not None:
            stop_scheduler(scheduler)

    app = FastAPI(
        title="CivicPulse API",
        description="公共舆情情感分析与威胁评估接口",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(sentiment.router)
    app.include_router(alerts.router)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc):
        return JSONResponse(
            status_code=422,
            content=error_response(
                code=ErrorCode.VALIDATION_ERROR,
                message="请求参数验证失败",
                details=jsonable_encoder(exc.errors())
            )
        )

    @app.get("/")
    async def root():
        """API 根路径"""
        return success_response(
            data={
                "message": "CivicPulse API",
                "docs": "/docs",
                "endpoints": {
                    "analyze": "POST /api/sentiment/analyze",
                    "bulk": "POST /api/sentiment/bulk",
                    "stats": "/api/sentiment/stats",
                    "active_alerts": "/api/alerts/active",
                    "feed": "ws /api/alerts/feed?session_id=...&role=..."
                },
                "scheduler": {
                    "threshold_scan": f"每 {service.config.scan_interval} 秒执行一次阈值扫描"
                }
            }
        )

    @app.get("/health")
    async def health_check():
        """健康检查端点"""
        return success_response(
            data={
                "status": "healthy",
                "ai_enabled": service.ai_enabled,
                "scanner_state": service.scanner.state
            }
        )

    return app


def get_app() -> FastAPI:
    """uvicorn 工厂入口：uvicorn civic_pulse.api.main:get_app --factory"""
    setup_logging()
    return create_app()
