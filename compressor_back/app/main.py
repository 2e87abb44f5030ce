from fastapi import FastAPI, File, Query, Request, UploadFile
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from typing import List, Optional
import asyncio
import logging
import uuid

from PIL import features

from app.config import Settings, ensure_directories, settings as default_settings
from app.exceptions import CompressorError
from app.models import CleanupResponse, CompressResponse, ErrorResponse, HealthResponse, UploadedFile
from app.services.batch_pipeline import BatchPipeline
from app.services.output_store import OutputStore
from app.services.transcoder import ImageTranscoder
from app.utils.file_handler import UploadTooLargeError, cleanup_file, get_file_size_mb, save_upload_file

# Настройка логирования
logging.basicConfig(level=getattr(logging, default_settings.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)


async def _cleanup_scheduler(store: OutputStore, settings: Settings):
    """
    Периодически удаляет старые результаты из хранилища
    """
    while True:
        try:
            await asyncio.sleep(settings.cleanup_interval_seconds)

            logger.info("Running scheduled cleanup...")
            await asyncio.to_thread(store.remove_older_than, settings.output_retention_hours)

        except asyncio.CancelledError:
            logger.info("Cleanup scheduler cancelled")
            break
        except Exception as e:
            logger.error(f"Error in cleanup scheduler: {str(e)}", exc_info=True)


async def _save_uploads(files: List[UploadFile], settings: Settings) -> List[UploadedFile]:
    """
    Сохраняет части multipart-запроса в директорию загрузок под
    сгенерированными именами. При ошибке удаляет уже сохраненные
    """
    saved: List[UploadedFile] = []
    try:
        for upload in files:
            original_name = upload.filename or ""
            temp_file = settings.upload_dir / uuid.uuid4().hex
            await save_upload_file(upload, temp_file, settings.max_file_size)
            logger.info(f"Saved upload {original_name} to {temp_file}, size: {get_file_size_mb(temp_file):.2f} MB")
            saved.append(UploadedFile(temporary_path=temp_file, original_name=original_name))
    except Exception:
        for uploaded in saved:
            cleanup_file(uploaded.temporary_path)
        raise
    return saved


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or default_settings

    store = OutputStore(settings.output_dir, public_path=settings.files_url_path)
    pipeline = BatchPipeline(
        store=store,
        transcoder=ImageTranscoder(settings.transcode_profile()),
        max_workers=settings.max_workers,
    )

    app = FastAPI(
        title="Image Compressor API",
        description="Сервис сжатия изображений в WebP",
        version="1.0.0"
    )
    app.state.settings = settings
    app.state.store = store
    app.state.pipeline = pipeline
    app.state.cleanup_task = None

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Раздача готовых файлов; директория создается на старте
    app.mount(
        store.public_path,
        StaticFiles(directory=settings.output_dir, check_dir=False),
        name="files",
    )

    @app.on_event("startup")
    async def startup_event():
        """
        Инициализация при запуске
        """
        ensure_directories(settings)
        logger.info("🚀 Image Compressor API started")
        logger.info(f"📁 Upload directory: {settings.upload_dir}")
        logger.info(f"📁 Output directory: {settings.output_dir}")
        logger.info(
            f"🖼  Profile: {settings.output_format}, width <= {settings.max_width}, "
            f"quality {settings.output_quality}, workers {settings.max_workers}"
        )

        if features.check("webp"):
            logger.info("✅ Pillow WebP support found")
        else:
            logger.error("❌ Pillow is built without WebP support!")

        if settings.output_retention_hours > 0:
            app.state.cleanup_task = asyncio.create_task(_cleanup_scheduler(store, settings))
            logger.info(f"🧹 Cleanup scheduler started, retention: {settings.output_retention_hours} hours")

    @app.on_event("shutdown")
    async def shutdown_event():
        """
        Действия при остановке
        """
        if app.state.cleanup_task is not None:
            app.state.cleanup_task.cancel()
            app.state.cleanup_task = None
        logger.info("👋 Shutting down Image Compressor API")

    @app.exception_handler(CompressorError)
    async def compressor_error_handler(request: Request, exc: CompressorError):
        if exc.status_code >= 500:
            logger.error(f"Compression error: {exc.message}", exc_info=exc)
            body = ErrorResponse(error="Server error")
        else:
            logger.warning(f"Rejected request: {exc.message}")
            body = ErrorResponse(error=exc.message)
        return JSONResponse(status_code=exc.status_code, content=body.model_dump())

    @app.get("/")
    async def root():
        """
        Проверка работы API
        """
        return {
            "message": "Image Compressor API",
            "version": "1.0.0",
            "status": "running"
        }

    @app.post(
        "/compress",
        response_model=CompressResponse,
        responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    )
    async def compress(request: Request, files: Optional[List[UploadFile]] = File(default=None)):
        """
        Принимает одно или несколько изображений.
        Один файл -> ссылка на .webp, несколько -> ссылка на .zip
        """
        files = files or []
        logger.info(f"Received compress request: {len(files)} files")

        try:
            uploaded = await _save_uploads(files, settings)
        except UploadTooLargeError as e:
            return JSONResponse(
                status_code=400,
                content=ErrorResponse(error=f"File too large: {e.filename}").model_dump(),
            )
        except OSError as e:
            logger.error(f"Upload error: {str(e)}", exc_info=True)
            return JSONResponse(status_code=500, content=ErrorResponse(error="Server error").model_dump())

        try:
            artifact = await pipeline.process(uploaded, base_url=str(request.base_url))
        except CompressorError:
            raise
        except Exception as e:
            logger.error(f"Compression error: {str(e)}", exc_info=True)
            return JSONResponse(status_code=500, content=ErrorResponse(error="Server error").model_dump())

        if artifact.failures:
            logger.warning(f"Skipped files: {[f.source_name for f in artifact.failures]}")
        logger.info(f"Created {artifact.kind.value} artifact: {artifact.stored_name}")

        return CompressResponse(type=artifact.kind, url=artifact.download_url)

    @app.post("/api/cleanup", response_model=CleanupResponse)
    async def manual_cleanup(hours: int = Query(24, ge=0)):
        """
        Ручной запуск очистки старых результатов
        """
        logger.info(f"Manual cleanup triggered for files older than {hours} hours")
        removed_count, freed_space = await asyncio.to_thread(store.remove_older_than, hours)

        return CleanupResponse(
            message="Cleanup completed",
            files_removed=removed_count,
            space_freed_mb=round(freed_space / (1024 * 1024), 2),
        )

    @app.get("/api/health", response_model=HealthResponse)
    async def health_check():
        """
        Проверка здоровья сервиса
        """
        storage_info = await asyncio.to_thread(store.storage_info)

        return HealthResponse(
            status="healthy",
            webp_supported=features.check("webp"),
            storage_used_mb=storage_info['total_size_mb'],
            file_count=storage_info['file_count'],
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=default_settings.backend_port)
