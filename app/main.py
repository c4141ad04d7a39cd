"""FastAPI 앱 진입점"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.config import get_settings
from app.core.bridge import get_bridge
from app.utils.logger import setup_logging, get_logger

# 로깅 설정
setup_logging()
logger = get_logger(__name__)

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """앱 라이프사이클 관리

    시작: Discord 로그인 → 길드 명령어 등록 → 게이트웨이 연결
    종료: 예약된 채널 삭제 취소 → Discord 연결 종료
    """
    settings = get_settings()
    logger.info("Starting Discord-Zendesk Bridge", port=settings.port)

    bridge = get_bridge()
    await bridge.start()
    try:
        yield
    finally:
        await bridge.stop()
        logger.info("Shutting down Discord-Zendesk Bridge")


app = FastAPI(
    title="Discord-Zendesk Bridge",
    description="Discord 길드와 Zendesk 메시징 간 양방향 상담 브릿지",
    version=VERSION,
    lifespan=lifespan,
)


# API prefix
API_PREFIX = "/api"


# ===== Health Check =====

@app.get(f"{API_PREFIX}/")
async def health_check():
    """헬스 체크"""
    return {
        "status": "ok",
        "service": "discord-zendesk-bridge",
        "version": VERSION,
    }


@app.get(f"{API_PREFIX}/health")
async def health():
    """상세 헬스 체크"""
    bridge = get_bridge()
    return {
        "status": "healthy",
        "components": {
            "api": "ok",
            "discord": "ok" if bridge.bot.is_ready() else "disconnected",
            "pending_deletions": len(bridge.deletions),
        },
    }


# ===== 라우터 등록 =====

# Zendesk Support / Sunshine Conversations Webhook
from app.webhooks.routes import router as webhook_router
app.include_router(webhook_router, prefix=f"{API_PREFIX}/webhook", tags=["Webhook"])


# ===== 에러 핸들러 =====

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """전역 예외 핸들러"""
    logger.error(
        "Unhandled exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
