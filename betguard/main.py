"""
FastAPI 애플리케이션 진입점
애플리케이션 생성 및 설정은 app 모듈에 위임
"""
import logging

from betguard.api.api import setup_api
from betguard.app.base import create_app
from betguard.app.exceptions import register_exception_handlers
from betguard.app.middlewares import register_middlewares
from betguard.core.config import settings
from betguard.core.logging import configure_logging

# 애플리케이션 생성 전 로깅 설정 적용
configure_logging(
    log_level=settings.LOG_LEVEL,
    json_logs=settings.JSON_LOGS,
    log_file=settings.LOG_FILE,
)

logger = logging.getLogger(__name__)

app = create_app()
register_middlewares(app)
register_exception_handlers(app)
setup_api(app)
