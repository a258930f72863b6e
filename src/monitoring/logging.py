"""構造化ログ設定 — loguru + JSON形式

uvicorn / SQLAlchemy など標準 logging を使うライブラリの出力も loguru に集約する。
"""

import logging
import sys
from contextvars import ContextVar
from pathlib import Path
from typing import Any

import orjson
from loguru import logger

# リクエストスコープの相関ID・ユーザーIDを保持
correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")
user_id_var: ContextVar[str] = ContextVar("user_id", default="")

_CONTEXT_KEYS = ("correlation_id", "user_id")
_INTERCEPTED_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "sqlalchemy.engine", "fastapi")

_TEXT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{module}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<magenta>{extra[correlation_id]}</magenta> | "
    "{message}"
)


def _json_formatter(record: dict[str, Any]) -> str:
    """JSON構造化ログフォーマッタ"""
    extra: dict[str, Any] = record.get("extra") or {}
    # コンテキスト外（リクエスト終了後など）は extra で明示された相関IDを使う
    bound_cid = extra.get("correlation_id", "")
    log_entry: dict[str, Any] = {
        "timestamp": record["time"].isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "module": record["module"],
        "function": record["function"],
        "line": record["line"],
        "correlation_id": correlation_id_var.get("") or ("" if bound_cid == "-" else bound_cid),
        "user_id": user_id_var.get(""),
    }

    for key, value in extra.items():
        if key not in _CONTEXT_KEYS:
            log_entry[key] = value

    exception = record["exception"]
    if exception:
        log_entry["exception"] = {
            "type": exception.type.__name__ if exception.type else None,
            "value": str(exception.value) if exception.value else None,
        }

    # format戻り値はテンプレートとして再解釈されるため波括弧をエスケープ
    return orjson.dumps(log_entry, default=str).decode().replace("{", "{{").replace("}", "}}") + "\n"


def _inject_context(record: dict[str, Any]) -> None:
    """テキスト出力用に相関IDを extra に補完"""
    record["extra"].setdefault("correlation_id", correlation_id_var.get("") or "-")


class InterceptHandler(logging.Handler):
    """標準 logging のレコードを loguru に転送"""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # 呼び出し元のフレームまで遡って module/line を正しく出す
        frame, depth = logging.currentframe(), 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def _intercept_stdlib_logging(level: str) -> None:
    handler = InterceptHandler()
    logging.basicConfig(handlers=[handler], level=0, force=True)
    for name in _INTERCEPTED_LOGGERS:
        std_logger = logging.getLogger(name)
        std_logger.handlers = [handler]
        std_logger.propagate = False
    # SQLのエコーはDEBUG時のみ
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if level == "DEBUG" else logging.WARNING)


def setup_logging(
    level: str = "INFO",
    json_output: bool = True,
    log_dir: str | Path | None = "logs",
) -> None:
    """ログ設定を初期化

    Args:
        level: ログレベル (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: JSON形式で出力するか（本番=True, 開発=False）
        log_dir: ファイル出力先。None でファイル出力なし
    """
    logger.remove()
    logger.configure(patcher=_inject_context)

    logger.add(
        sys.stdout,
        format=_json_formatter if json_output else _TEXT_FORMAT,
        level=level,
        colorize=not json_output,
    )

    # ファイル出力（ローテーション付き、常にJSON）
    if log_dir is not None:
        logger.add(
            Path(log_dir) / "activity-monitor_{time:YYYY-MM-DD}.log",
            rotation="100 MB",
            retention="30 days",
            compression="gz",
            format=_json_formatter,
            level=level,
        )

    _intercept_stdlib_logging(level.upper())
    logger.info("ログ設定初期化完了", level=level, json_output=json_output, log_dir=str(log_dir))
