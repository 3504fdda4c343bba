from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Dict, List, Optional

MEGABYTE = 1024 * 1024


class Settings(BaseSettings):
    PROJECT_NAME: str = "Transform Factory"
    VERSION: str = "1.0.0"
    API_PREFIX: str = "/api"

    CORS_ORIGINS: List[str] = ["*"]
    LOG_LEVEL: str = "INFO"

    # Upload limits
    MAX_UPLOAD_MB: int = 25
    UPLOAD_LIMITS_MB: Dict[str, int] = {
        "merge-images": 10,
        "split": 10,
        "rotate": 10,
        "protect": 10,
        "unlock": 10,
        "watermark": 10,
        "add-page-numbers": 10,
        "sign": 15,
        "create-form": 15,
        "redact": 20,
        "compress": 50,
        "video": 50,
    }

    # External engines
    SOFFICE_BINARY: str = "soffice"
    FFMPEG_BINARY: str = "ffmpeg"
    TESSERACT_CMD: Optional[str] = None
    CONVERSION_TIMEOUT: int = 180

    # Translation
    TRANSLATION_CHUNK_SIZE: int = 4000

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    def upload_limit(self, operation: str) -> int:
        """Maximum upload size in bytes for an operation."""
        return self.UPLOAD_LIMITS_MB.get(operation, self.MAX_UPLOAD_MB) * MEGABYTE


settings = Settings()
