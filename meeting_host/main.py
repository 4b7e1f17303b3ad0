"""
meeting_host.main
~~~~~~~~~~~~~~~~~

FastAPI 应用入口 —— 注册路由、定义生命周期。
"""
from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from meeting_host.api import room_events, room_stream_ws
from meeting_host.core.config import settings
from meeting_host.core.logging import get_logger, setup_logging
from meeting_host.schemas.api_response import ApiResponse
from meeting_host.services.hosting_system import HostingSystem
from meeting_host.services.oracle import HttpEntitlementOracle
from meeting_host.services.room_server import InMemoryRoomServer

# 初始化日志系统（必须在其他模块之前）
setup_logging()
logger = get_logger(__name__)


# ── 生命周期 ──────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期钩子，仅在 worker 启动/关闭时各执行一次。"""
    # ── 启动 ──
    http_oracle = HttpEntitlementOracle(settings.ENTITLEMENT_URL) if settings.ENTITLEMENT_URL else None
    room_server = InMemoryRoomServer()
    app.state.room_server = room_server
    app.state.hosting_system = HostingSystem(room_server, oracle=http_oracle, settings=settings)
    logger.info(
        "🚀 应用已启动 | env=%s | domain=%s | destroy_delay=%ss | oracle=%s",
        settings.ENVIRONMENT,
        settings.MUC_DOMAIN_BASE,
        settings.DESTROY_DELAY_SECONDS,
        "http" if http_oracle else "subscription-status",
    )
    yield
    # ── 关闭 ──
    await app.state.hosting_system.shutdown()
    if http_oracle is not None:
        await http_oracle.aclose()
    logger.info("👋 应用已关闭")


# ── 创建 FastAPI 实例 ─────────────────────────────────────────────────

app: FastAPI = FastAPI(
    title=settings.PROJECT_NAME,
    description="会议主持人选举与房间生命周期控制 API",
    version=settings.VERSION,
    debug=settings.debug,
    lifespan=lifespan,
)

# ── 路由挂载 ──────────────────────────────────────────────────────────
app.include_router(room_events.router, prefix="/api", tags=["Room Events"])
app.include_router(room_stream_ws.router, tags=["Room Intents"])


# ── 全局异常处理器 ────────────────────────────────────────────────────

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """捕获所有未处理异常，返回统一的 ApiResponse.fail() 格式。"""
    logger.error("未捕获异常: %s %s -> %s", request.method, request.url, exc, exc_info=True)
    # 非 prod 环境返回详细错误信息，prod 环境隐藏内部细节
    detail = str(exc) if not settings.is_prod else "服务器内部错误"
    response = ApiResponse.fail(msg=detail, code=500, data=None)
    return JSONResponse(
        status_code=500,
        content=response.model_dump(),
    )


@app.get("/health", tags=["System"])
async def health_check() -> JSONResponse:
    """验证服务是否正常运行。"""
    return JSONResponse(
        content={
            "status": "ok",
            "environment": settings.ENVIRONMENT,
            "domain": settings.MUC_DOMAIN_BASE,
            "log_level": settings.effective_log_level,
        },
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "meeting_host.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.reload,  # 仅 dev 环境开启热重载
        log_level=settings.effective_log_level.lower(),
    )
