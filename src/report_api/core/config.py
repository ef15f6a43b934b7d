import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

MB = 1024 * 1024


class CorsPolicy(BaseModel):
    """Cross-origin policy for browser clients of the API."""

    model_config = ConfigDict(frozen=True)

    allow_origins: tuple[str, ...] = (
        "https://report-generator-woad.vercel.app",
        "https://report-git.vercel.app",
        "http://localhost:5173",
        "http://localhost:3000",
    )
    allow_methods: tuple[str, ...] = ("GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH")
    allow_headers: tuple[str, ...] = (
        "Content-Type",
        "Authorization",
        "Origin",
        "Accept",
        "X-Requested-With",
    )
    expose_headers: tuple[str, ...] = ("Content-Range", "X-Content-Range")
    allow_credentials: bool = True
    max_age: int = Field(86400, description="Preflight cache lifetime in seconds")

    def is_allowed(self, origin: Optional[str]) -> bool:
        return origin is not None and origin in self.allow_origins


class UploadPolicy(BaseModel):
    """Constraints applied to images forwarded to the media store."""

    model_config = ConfigDict(frozen=True)

    folder: str = "report_images"
    allowed_formats: tuple[str, ...] = ("jpeg", "png", "jpg")
    max_file_bytes: int = 10 * MB
    # Whole multipart request, counted while it streams in
    max_request_bytes: int = 50 * MB


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    mongodb_uri: str = "mongodb://localhost:27017"
    database_name: str = "report_generator"
    server_selection_timeout_ms: int = 5000

    cloudinary_cloud_name: Optional[str] = None
    cloudinary_api_key: Optional[str] = None
    cloudinary_api_secret: Optional[str] = None

    port: int = 8000
    environment: str = "development"

    secret_key: str = "your-secret-key-for-jwt-!ChangeMe!"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 30

    max_body_bytes: int = 50 * MB
    log_level: str = "INFO"
    log_namespaces: tuple[str, ...] = ()

    cors: CorsPolicy = CorsPolicy()
    upload: UploadPolicy = UploadPolicy()

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


def _split(value: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in value.split(",") if part.strip())


def load_settings() -> Settings:
    """Build the settings from the process environment (and a `.env` file, if any)."""
    load_dotenv()
    return Settings(
        mongodb_uri=os.getenv("MONGODB_URI", "mongodb://localhost:27017"),
        database_name=os.getenv("MONGODB_DB", "report_generator"),
        cloudinary_cloud_name=os.getenv("CLOUDINARY_CLOUD_NAME"),
        cloudinary_api_key=os.getenv("CLOUDINARY_API_KEY"),
        cloudinary_api_secret=os.getenv("CLOUDINARY_API_SECRET"),
        port=int(os.getenv("PORT", "8000")),
        environment=os.getenv("APP_ENV", "development"),
        secret_key=os.getenv("SECRET_KEY", "your-secret-key-for-jwt-!ChangeMe!"),
        access_token_expire_minutes=int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30")),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_namespaces=_split(os.getenv("LOG_NAMESPACES", "")),
    )
