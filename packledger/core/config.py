# packledger/core/config.py

from typing import Any, List
from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict
import os

# 프로젝트의 루트 디렉토리 경로를 계산합니다.
BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


class Settings(BaseSettings):
    """
    애플리케이션의 모든 설정을 정의하는 Pydantic BaseSettings 모델입니다.
    환경 변수 및 .env 파일에서 값을 자동으로 로드합니다.
    """

    # --- Pydantic Settings 설정 ---
    model_config = SettingsConfigDict(
        env_file=os.path.join(BASE_DIR, '.env'),  # 프로젝트 루트의 .env 파일을 명시적으로 지정
        env_file_encoding='utf-8',
        extra='ignore',                      # .env 파일에 정의되었지만 모델에 없는 변수는 무시
        case_sensitive=True
    )

    # --- 애플리케이션 기본 설정 ---
    APP_NAME: str = "packledger API"
    APP_VERSION: str = "0.1.0"
    APP_DESCRIPTION: str = "Stock ledger and allocation core API"
    APP_ENV: str = Field("development", description="Application environment (e.g., development, production, testing)")
    DEBUG_MODE: bool = Field(False, description="Enable debug mode for SQL echo and detailed error messages")
    LOG_LEVEL: str = Field("INFO", description="Root logging level")
    CORS_ORIGINS: List[str] = Field(default_factory=lambda: ["*"], description="Allowed CORS origins")

    # --- 데이터베이스 설정 ---
    # 운영 환경에서는 postgresql+asyncpg://... 형식의 URL을 사용합니다.
    DATABASE_URL: SecretStr = Field(
        SecretStr("sqlite+aiosqlite:///./packledger.db"),
        description="Async SQLAlchemy database connection URL"
    )
    DB_POOL_SIZE: int = Field(10, description="Connection pool size (ignored for SQLite)")
    DB_MAX_OVERFLOW: int = Field(20, description="Connection pool overflow (ignored for SQLite)")

    # --- JWT (JSON Web Token) 설정 ---
    SECRET_KEY: SecretStr = Field(
        SecretStr("change-me-in-production"),
        description="Secret key for JWT token signing. Keep this highly secure!"
    )
    ALGORITHM: str = Field("HS256", description="Algorithm used for JWT signing (e.g., HS256)")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(30, description="Access token expiration time in minutes")

    # --- ARQ (Redis) 설정 ---
    ARQ_ENABLED: bool = Field(False, description="Create the ARQ Redis pool on startup")
    REDIS_HOST: str = Field("localhost", description="Redis host for ARQ")
    REDIS_PORT: int = Field(6379, description="Redis port for ARQ")

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.get_secret_value().startswith("sqlite")

    def model_post_init(self, __context: Any) -> None:  # noqa: ANN001
        # 운영 환경에서 기본 비밀키를 사용하는 것을 막습니다.
        if self.APP_ENV == "production" and self.SECRET_KEY.get_secret_value() == "change-me-in-production":
            raise ValueError("SECRET_KEY must be set in production")


settings = Settings()
