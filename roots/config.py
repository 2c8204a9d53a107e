from pydantic_settings import BaseSettings
from pydantic import Field

class Settings(BaseSettings):
    app_name: str = "Roots Archive"
    app_env: str = Field("dev", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    secret_key: str | None = Field(default=None, alias="SECRET_KEY")
    access_token_expire_minutes: int = Field(60 * 24 * 30, alias="ACCESS_TOKEN_EXPIRE_MINUTES")
    database_url: str | None = Field(default=None, alias="DATABASE_URL")

    db_backoff_seconds: float = Field(10, alias="DB_BACKOFF_SECONDS")
    db_pool_backoff_seconds: float = Field(3, alias="DB_POOL_BACKOFF_SECONDS")

    uploads_dir: str = Field("uploads", alias="UPLOADS_DIR")
    private_uploads_dir: str = Field("private", alias="PRIVATE_UPLOADS_DIR")
    max_book_upload_mb: int = Field(50, alias="MAX_BOOK_UPLOAD_MB")
    max_tree_upload_mb: int = Field(50, alias="MAX_TREE_UPLOAD_MB")
    max_image_upload_mb: int = Field(10, alias="MAX_IMAGE_UPLOAD_MB")

    cors_origins: list[str] = Field(["*"], alias="CORS_ORIGINS")

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def is_dev(self) -> bool:
        return self.app_env.lower() in ("dev", "development")

settings = Settings()
