"""구조화된 로깅 설정

앱 로그는 structlog 로, discord.py/uvicorn/httpx 의 표준 logging 로그는
ProcessorFormatter 를 거쳐 같은 형식(JSON, debug 일 때 콘솔)으로 출력한다.
"""
import logging
import sys

import structlog

from app.config import get_settings


# 게이트웨이 하트비트 등으로 시끄러운 라이브러리 로거 (debug 가 아니면 WARNING 이상만)
NOISY_LOGGERS = ("discord", "discord.gateway", "discord.http", "httpx")

SHARED_PROCESSORS = [
    structlog.contextvars.merge_contextvars,
    structlog.processors.add_log_level,
    structlog.processors.TimeStamper(fmt="iso"),
]


def _renderer(is_debug: bool):
    if is_debug:
        return structlog.dev.ConsoleRenderer()
    return structlog.processors.JSONRenderer()


def setup_logging() -> None:
    """structlog + 표준 logging 설정"""
    settings = get_settings()

    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)
    is_debug = log_level == logging.DEBUG

    structlog.configure(
        processors=[
            *SHARED_PROCESSORS,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            _renderer(is_debug),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[*SHARED_PROCESSORS, structlog.stdlib.add_logger_name],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(is_debug),
        ],
    ))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(log_level)

    if not is_debug:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(max(log_level, logging.WARNING))


def get_logger(name: str = __name__) -> structlog.BoundLogger:
    """로거 인스턴스 반환"""
    return structlog.get_logger(name)
