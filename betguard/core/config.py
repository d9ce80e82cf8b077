import os
from typing import Dict, List, Optional, Any

from pydantic import Field, field_validator, ValidationInfo
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """애플리케이션 설정"""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",  # .env 파일에 정의되지 않은 환경 변수 무시
    )

    # 기본 설정
    PROJECT_NAME: str = "BetGuard Compliance Core"
    API_V1_PREFIX: str = "/api"
    DEBUG: bool = False
    VERSION: str = "1.0.0"
    LOG_LEVEL: str = "INFO"
    JSON_LOGS: bool = False
    LOG_FILE: Optional[str] = None
    ENVIRONMENT: str = "dev"  # dev, test, prod
    BACKEND_CORS_ORIGINS: List[str] = []

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    def assemble_cors_origins(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",") if i.strip()]
        return v

    # 데이터베이스 설정
    DATABASE_URL: Optional[str] = None
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "betguard"
    POSTGRES_PORT: str = "5432"
    SQLALCHEMY_DATABASE_URI: Optional[str] = Field(None, validate_default=True)
    DB_ECHO: bool = False
    CREATE_TABLES_ON_STARTUP: bool = True

    @field_validator("SQLALCHEMY_DATABASE_URI", mode="before")
    def assemble_db_connection(cls, v: Optional[str], info: ValidationInfo) -> Any:
        database_url_from_env = info.data.get("DATABASE_URL")
        if database_url_from_env:
            return database_url_from_env
        if isinstance(v, str):
            return v

        values = info.data
        db_name = values.get("POSTGRES_DB")
        if os.getenv("ENVIRONMENT") == "test":
            db_name = f"{db_name}_test"
        return (
            f"postgresql+asyncpg://{values.get('POSTGRES_USER')}:{values.get('POSTGRES_PASSWORD')}"
            f"@{values.get('POSTGRES_SERVER')}:{values.get('POSTGRES_PORT')}/{db_name}"
        )

    # 백그라운드 작업 설정
    TASK_WORKER_COUNT: int = 5
    ASSESSMENT_SWEEP_ENABLED: bool = True
    ASSESSMENT_SWEEP_INTERVAL_SECONDS: int = 3600  # 1시간
    ASSESSMENT_SWEEP_BATCH_SIZE: int = 100

    # --- 위험 점수 정책 ---
    # 가중치 합계는 반드시 1.0
    RISK_FACTOR_WEIGHTS: Dict[str, float] = {
        "account_age": 0.15,
        "kyc_status": 0.20,
        "login_patterns": 0.10,
        "transaction_patterns": 0.15,
        "betting_patterns": 0.15,
        "geolocation": 0.10,
        "device_fingerprint": 0.10,
        "social_signals": 0.05,
    }
    RISK_LEVEL_CRITICAL_THRESHOLD: float = 80.0
    RISK_LEVEL_HIGH_THRESHOLD: float = 60.0
    RISK_LEVEL_MEDIUM_THRESHOLD: float = 40.0
    # 위험 등급별 재평가 주기 (일)
    ASSESSMENT_INTERVAL_DAYS: Dict[str, int] = {
        "critical": 1,
        "high": 3,
        "medium": 7,
        "low": 30,
    }
    TRUSTED_EMAIL_DOMAINS: List[str] = ["gmail.com", "yahoo.com", "outlook.com", "hotmail.com"]
    PLACEHOLDER_FACTOR_SCORE: float = 50.0
    HIGH_RISK_USER_LIMIT: int = 50

    # 행동 지표 가산점
    BONUS_UNIQUE_IPS_THRESHOLD: int = 10
    BONUS_UNIQUE_IPS_POINTS: float = 10.0
    BONUS_UNIQUE_DEVICES_THRESHOLD: int = 5
    BONUS_UNIQUE_DEVICES_POINTS: float = 5.0
    BONUS_AVG_BET_THRESHOLD: float = 1000.0
    BONUS_AVG_BET_POINTS: float = 5.0
    BONUS_WIN_LOSS_RATIO_THRESHOLD: float = 0.8
    BONUS_WIN_LOSS_RATIO_POINTS: float = 10.0

    # --- 사기 탐지 임계값 ---
    LOGIN_WINDOW_HOURS: int = 24
    LOGIN_MAX_DISTINCT_IPS: int = 5
    LOGIN_HIGH_RISK_SCORE: float = 80.0
    BET_LARGE_STAKE: float = 10000.0
    BET_VELOCITY_WINDOW_MINUTES: int = 60
    BET_VELOCITY_MAX_COUNT: int = 50
    BET_PATTERN_SCORE_THRESHOLD: float = 80.0
    DEPOSIT_LARGE_AMOUNT: float = 50000.0
    DEPOSIT_WINDOW_HOURS: int = 24
    DEPOSIT_WINDOW_MAX_TOTAL: float = 25000.0
    HISTORY_RETENTION_DAYS: int = 30

    # KYC 상태별 결제/베팅 한도
    KYC_TRANSACTION_LIMITS: Dict[str, Dict[str, float]] = {
        "pending": {"single": 1000.0, "daily": 2000.0},
        "verified": {"single": 50000.0, "daily": 100000.0},
        "rejected": {"single": 100.0, "daily": 200.0},
    }
    KYC_BETTING_LIMITS: Dict[str, float] = {
        "pending": 500.0,
        "verified": 25000.0,
        "rejected": 50.0,
    }


def get_settings() -> Settings:
    """
    설정 인스턴스 가져오기

    Returns:
        Settings: 설정 객체
    """
    environment = os.getenv("ENVIRONMENT", "dev").lower()
    env_file = f".env.{environment}" if environment != "prod" else ".env"
    return Settings(_env_file=env_file)


settings = get_settings()
