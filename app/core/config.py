from functools import lru_cache
from pathlib import Path
from typing import Annotated, Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parent.parent.parent
ENV_FILE = BASE_DIR / ".env"


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    PROJECT_NAME: str = "Inventory Catalog API"
    API_PREFIX: str = "/api"

    DATABASE_URL: str = Field(...)

    JWT_SECRET_KEY: str = Field(...)
    JWT_ISSUER: str = Field(default="inventory-api")
    JWT_AUDIENCE: str = Field(default="inventory-clients")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=120, ge=1)

    LOG_LEVEL: str = Field(default="INFO")
    LOG_FILE_PATH: Optional[str] = Field(default=None)
    ENVIRONMENT: str = Field(default="development")

    CORS_ORIGINS: Annotated[list[str], NoDecode] = Field(default_factory=list)

    MEDIA_ROOT: Path = Field(default=BASE_DIR / "media")
    PRODUCT_IMAGE_DIR_NAME: str = Field(default="product-images")
    PRODUCT_IMAGE_MAX_BYTES: int = Field(default=5 * 1024 * 1024, ge=1)

    DEFAULT_PAGE_SIZE: int = Field(default=8, ge=1)
    MAX_PAGE_SIZE: int = Field(default=50, ge=1)

    DEFAULT_ADMIN_USERNAME: str = Field(default="admin")
    DEFAULT_ADMIN_EMAIL: str = Field(default="admin@example.com")
    DEFAULT_ADMIN_PASSWORD: str = Field(default="admin123")

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: str | list[str]) -> list[str]:
        if isinstance(v, str):
            v = v.strip().strip('"\'')
            if v == "*":
                return ["*"]
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("MEDIA_ROOT", mode="after")
    @classmethod
    def resolve_media_root(cls, v: Path) -> Path:
        if not v.is_absolute():
            return BASE_DIR / v
        return v

    @property
    def product_image_dir(self) -> Path:
        return self.MEDIA_ROOT / self.PRODUCT_IMAGE_DIR_NAME


load_dotenv(ENV_FILE)


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings instance."""

    return Settings()
