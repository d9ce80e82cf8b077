import json
import logging
import uuid

from sqlalchemy.types import TypeDecorator, Text, VARCHAR
from sqlalchemy.dialects.postgresql import UUID as PG_UUID, JSONB

logger = logging.getLogger(__name__)


class JSONType(TypeDecorator):
    """
    플랫폼 독립적인 JSON 타입.

    PostgreSQL에서는 네이티브 JSONB 타입을 사용하고,
    다른 데이터베이스(예: SQLite)에서는 TEXT로 저장합니다.

    변경 추적(MutableDict 등)을 하지 않으므로 리스트/딕셔너리를 수정할 때는
    항상 새 객체를 할당해야 합니다.
    """
    impl = Text
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(JSONB())
        return dialect.type_descriptor(Text())

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if dialect.name == "postgresql":
            return value
        return json.dumps(value, default=str)

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        if dialect.name == "postgresql":
            return value
        try:
            return json.loads(value)
        except (json.JSONDecodeError, TypeError):
            logger.error(f"Failed to decode JSON from database: {value!r}")
            return None


class GUID(TypeDecorator):
    """데이터베이스 독립적인 GUID 타입

    PostgreSQL에서는 UUID로, 그 외(SQLite)에서는 VARCHAR(36)으로 처리합니다.
    """
    impl = VARCHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PG_UUID(as_uuid=True))
        return dialect.type_descriptor(VARCHAR(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if dialect.name == "postgresql":
            return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))
        return str(value)

    def process_result_value(self, value, dialect):
        if value is None or isinstance(value, uuid.UUID):
            return value
        try:
            return uuid.UUID(value)
        except (TypeError, ValueError):
            logger.warning(f"Could not convert value '{value}' to UUID, returning original.")
            return value
