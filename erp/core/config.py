from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
from pydantic import field_validator

class Settings(BaseSettings):
    # Database settings
    DB_TYPE: str = 'sqlite'  # sqlite, mysql, postgres
    DATABASE_URL: Optional[str] = None
    SQLITE_PATH: str = './printsoft_erp.db'
    SQLITE_BUSY_TIMEOUT: int = 30  # seconds a writer waits for the database lock
    DB_HOST: str = 'localhost'
    DB_PORT: int = 3306
    DB_USER: str = 'erp_user'
    DB_PASSWORD: str = 'erp_password123'
    DB_NAME: str = 'printsoft_erp'
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20

    # JWT settings
    APP_SECRET_STRING: str = 'your-super-secret-key-here-change-in-production-2024'
    ALGORITHM: str = 'HS256'
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # Pagination
    DEFAULT_PAGE_SIZE: int = 100
    MAX_PAGE_SIZE: int = 500

    # Business defaults
    DEFAULT_CURRENCY: str = 'KES'
    DEFAULT_COUNTRY: str = 'Kenya'

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        db_type = self.DB_TYPE.lower()
        if db_type == 'mysql':
            return (
                f"mysql+pymysql://{self.DB_USER}:{self.DB_PASSWORD}"
                f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
            )
        if db_type in ('postgres', 'postgresql'):
            return (
                f"postgresql+psycopg2://{self.DB_USER}:{self.DB_PASSWORD}"
                f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
            )
        return f"sqlite:///{self.SQLITE_PATH}"

    model_config = SettingsConfigDict(
        extra="allow",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True
    )

    @field_validator("DEBUG", mode="before")
    @classmethod
    def parse_debug(cls, v):
        if isinstance(v, str):
            return v.lower().strip('"').strip("'") in ("true", "1", "yes", "on")
        return bool(v)

    @field_validator("DB_TYPE", mode="before")
    @classmethod
    def parse_db_type(cls, v):
        if isinstance(v, str):
            return v.lower().strip('"').strip("'")
        return v

settings = Settings()
