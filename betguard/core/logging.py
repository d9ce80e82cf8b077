"""
구조화 로깅

서비스는 StructuredLogger 로 operation, user_id, alert_id 같은 맥락을 키워드 인자로 남긴다.
JsonFormatter 는 이 맥락을 JSON 한 줄로, 일반 포맷터는 "msg | k=v" 형태로 출력한다.
"""
import json
import logging
import sys
import traceback
import uuid
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

# 개인정보/자격증명으로 보는 키 (부분 일치)
REDACTED_KEYS = ("password", "secret", "token", "authorization", "bank_account", "address", "phone", "date_of_birth")
REDACTED = "***REDACTED***"
MAX_ITEMS = 20
MAX_TEXT = 1024


def scrub(value: Any) -> Any:
    """로그용 값 정리: 민감 키 가림, 긴 목록/문자열 절단, JSON 비호환 값 문자열화"""
    if isinstance(value, dict):
        return {
            key: REDACTED if any(marker in str(key).lower() for marker in REDACTED_KEYS) else scrub(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple, set, frozenset)):
        items = list(value)
        cleaned = [scrub(item) for item in items[:MAX_ITEMS]]
        if len(items) > MAX_ITEMS:
            cleaned.append(f"...<{len(items) - MAX_ITEMS} more items>")
        return cleaned
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, str):
        return value if len(value) <= MAX_TEXT else f"{value[:MAX_TEXT]}...<{len(value) - MAX_TEXT} more chars>"
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, uuid.UUID):
        return str(value)
    return f"<{type(value).__name__}: {value}>"[:MAX_TEXT]


class StructuredLogger:
    """맥락 키워드를 붙여 기록하는 로거 래퍼

    생성 시 넘긴 키워드(예: service="compliance_triage")는 모든 기록에 포함된다.
    """

    def __init__(self, name: str, **bound: Any):
        self.logger = logging.getLogger(name)
        self.name = name
        self.bound = bound

    def bind(self, **context: Any) -> "StructuredLogger":
        return StructuredLogger(self.name, **{**self.bound, **context})

    def _log(self, level: int, msg: str, /, exception: Optional[BaseException] = None, **context: Any):
        if not self.logger.isEnabledFor(level):
            return
        context = scrub({**self.bound, **context})
        structured: Dict[str, Any] = {"context": context}
        if exception is not None:
            structured["exception"] = {
                "type": type(exception).__name__,
                "message": str(exception),
                "traceback": "".join(traceback.format_exception(type(exception), exception, exception.__traceback__))
                if level >= logging.ERROR else None,
            }
        rendered = msg
        if context:
            rendered = f"{msg} | " + " ".join(f"{key}={value}" for key, value in context.items())
        # stacklevel=3: 호출한 서비스 코드의 위치가 기록되도록
        self.logger.log(level, rendered, extra={"structured": structured, "raw_message": msg}, stacklevel=3)

    def debug(self, msg: str, **context: Any):
        self._log(logging.DEBUG, msg, **context)

    def info(self, msg: str, **context: Any):
        self._log(logging.INFO, msg, **context)

    def warning(self, msg: str, **context: Any):
        self._log(logging.WARNING, msg, **context)

    def error(self, msg: str, exception: Optional[BaseException] = None, **context: Any):
        self._log(logging.ERROR, msg, exception=exception, **context)


class JsonFormatter(logging.Formatter):
    """레코드를 JSON 한 줄로 출력"""

    def format(self, record: logging.LogRecord) -> str:
        structured = getattr(record, "structured", None) or {}
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "message": getattr(record, "raw_message", None) or record.getMessage(),
            "logger": record.name,
            "location": f"{record.pathname}:{record.lineno}",
            "function": record.funcName,
            "process": record.process,
        }
        if structured.get("context"):
            payload["context"] = structured["context"]
        if structured.get("exception"):
            payload["exception"] = structured["exception"]
        elif record.exc_info:
            payload["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(
    log_level: str = "INFO",
    json_logs: bool = True,
    log_file: Optional[str] = None,
):
    """루트 로거 설정 (애플리케이션 시작 시 한 번 호출)

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR, CRITICAL
        json_logs: True 이면 JsonFormatter 사용
        log_file: 지정하면 콘솔과 함께 파일에도 기록
    """
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        try:
            handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
        except OSError as e:
            print(f"Warning: could not open log file {log_file}: {e}", file=sys.stderr)

    formatter: logging.Formatter
    if json_logs:
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s [%(levelname)-8s] %(name)s:%(lineno)d - %(message)s")
    for handler in handlers:
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    # 외부 라이브러리 소음 줄이기
    for noisy in ("sqlalchemy.engine", "aiosqlite", "asyncio", "uvicorn.access"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        f"Logging configured: level={log_level}, json_logs={json_logs}, file={log_file or 'None'}"
    )
