"""
Logging setup for SkyBrief.

This module configures loguru sinks (colored console for development,
serialized JSON lines otherwise), routes stdlib logging from aiohttp
and asyncio into loguru, and hands out loggers bound to a component
name. The briefing route is carried as contextual extra data.
"""

from __future__ import annotations
import logging
import sys
from typing import Any, Dict, Optional, TextIO
from loguru import logger

# extra 기본값 (포맷에서 항상 참조 가능해야 함)
DEFAULT_EXTRA: Dict[str, Any] = {"name": "skybrief", "route": "-"}

# loguru 로 흡수할 stdlib 로거와 최소 레벨
STDLIB_LOGGERS: Dict[str, int] = {
    "aiohttp": logging.WARNING,
    "aiohttp.client": logging.WARNING,
    "asyncio": logging.WARNING,
}

DEV_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> "
    "<level>{level: <7}</level> "
    "<cyan>{extra[name]}</cyan> "
    "<magenta>[{extra[route]}]</magenta> "
    "{function}:{line} | "
    "<level>{message}</level>"
)

class InterceptHandler(logging.Handler):
    """stdlib 로그 레코드를 loguru 로 전달하는 핸들러"""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # logging 모듈 내부 프레임을 건너뛰어 실제 호출 위치를 찾음
        frame, depth = sys._getframe(1), 1
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.bind(name=record.name).opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )

def _route_stdlib_logging() -> None:
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name, level in STDLIB_LOGGERS.items():
        stdlib_logger = logging.getLogger(name)
        stdlib_logger.handlers = [InterceptHandler()]
        stdlib_logger.setLevel(level)
        stdlib_logger.propagate = False

def configure_logging(log_level: str = "INFO", *, json: bool = False,
                      sink: Optional[TextIO] = None) -> None:
    """
    loguru 싱크를 다시 구성합니다.

    Args:
        log_level: 최소 로그 레벨
        json: True 이면 한 줄 JSON 으로 직렬화
        sink: 출력 스트림 (기본 stderr)
    """
    logger.remove()
    logger.configure(extra=dict(DEFAULT_EXTRA))
    if json:
        logger.add(sink or sys.stderr, level=log_level.upper(), serialize=True,
                   backtrace=False, diagnose=False)
    else:
        logger.add(sink or sys.stderr, level=log_level.upper(), format=DEV_FORMAT,
                   colorize=sink is None, backtrace=True, diagnose=False)
    _route_stdlib_logging()

def get_logger(name: str = "skybrief", **ctx):
    """컴포넌트 이름과 선택적 컨텍스트를 바인딩한 logger"""
    return logger.bind(name=name, **ctx)

def with_context(**ctx):
    """블록 안의 모든 로그에 컨텍스트 부여 (예: route)"""
    return logger.contextualize(**ctx)
