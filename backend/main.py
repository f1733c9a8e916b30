"""链上狼人杀 - FastAPI 应用入口"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import get_settings
from ledger import build_orchestrator
from api.game import router as game_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    app.state.orchestrator = None
    try:
        app.state.orchestrator = build_orchestrator(settings)
    except Exception as e:
        logger.warning(f"编排器初始化失败，游戏接口不可用: {e}")
    yield


settings = get_settings()

app = FastAPI(
    title=settings.app_name,
    lifespan=lifespan,
)

# CORS 配置
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/api/health")
async def health_check():
    """健康检查接口"""
    return {
        "status": "ok",
        "app": settings.app_name,
        "orchestrator": getattr(app.state, "orchestrator", None) is not None,
    }


# 注册路由
app.include_router(game_router)
