from pydantic_settings import BaseSettings
from pathlib import Path

from app.services.transcoder import TranscodeProfile


class Settings(BaseSettings):
    upload_dir: Path = Path("./uploads")
    output_dir: Path = Path("./outputs")
    max_file_size: int = 50 * 1024 * 1024  # 50MB на один файл

    # Профиль сжатия
    max_width: int = 1600
    output_quality: int = 75
    output_format: str = "webp"
    max_workers: int = 4  # Параллельные конвертации в bulk-запросе

    files_url_path: str = "/files"
    output_retention_hours: int = 24  # 0 отключает плановую очистку
    cleanup_interval_seconds: int = 3600

    log_level: str = "INFO"
    backend_port: int = 8000

    class Config:
        env_file = ".env"

    def transcode_profile(self) -> TranscodeProfile:
        return TranscodeProfile(
            max_width=self.max_width,
            output_format=self.output_format,
            quality=self.output_quality,
        )


def ensure_directories(settings: Settings):
    """
    Создает директории загрузок и результатов если их нет
    """
    settings.upload_dir.mkdir(parents=True, exist_ok=True)
    settings.output_dir.mkdir(parents=True, exist_ok=True)


settings = Settings()
