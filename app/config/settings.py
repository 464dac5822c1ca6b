# config/settings.py
from pydantic_settings import BaseSettings
from typing import List, Optional

class Settings(BaseSettings):
    # API
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "Mockup Service"

    # CORS
    ALLOWED_HOSTS: List[str] = ["*"]

    # Auth
    BASIC_AUTH_USERNAME: str = "admin"
    BASIC_AUTH_PASSWORD: str = "secret"

    # Templates
    TEMPLATES_DIR: str = "assets/templates"

    # Design fetch
    FETCH_TIMEOUT_SECONDS: float = 30.0
    USER_AGENT: str = "MockupService/0.1.0"
    ENDPOINT_TIMEOUT_SECONDS: float = 55.0
    MAX_DESIGN_BYTES: int = 25 * 1024 * 1024

    # Pixel pipeline (0 = derive from cpu count)
    CPU_WORKERS: int = 0
    DISPLACEMENT_WORKERS: int = 0
    DISPLACEMENT_BAND_ROWS: int = 64

    # Env
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    # Cloudinary (optional publishing of generated mockups)
    CLOUDINARY_CLOUD_NAME: Optional[str] = None
    CLOUDINARY_API_KEY: Optional[str] = None
    CLOUDINARY_API_SECRET: Optional[str] = None
    CLOUDINARY_FOLDER: str = "mockups"

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def cloudinary_enabled(self) -> bool:
        return bool(self.CLOUDINARY_CLOUD_NAME and self.CLOUDINARY_API_KEY and self.CLOUDINARY_API_SECRET)

settings = Settings()
