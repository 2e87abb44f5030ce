import aiofiles
import logging
from pathlib import Path
from fastapi import UploadFile

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


class UploadTooLargeError(Exception):
    def __init__(self, filename: str, limit: int):
        self.filename = filename
        self.limit = limit
        super().__init__(f"{filename} exceeds {limit} bytes")


async def save_upload_file(upload_file: UploadFile, destination: Path, max_size: int = 0) -> Path:
    """
    Сохраняет загруженный файл на диск потоково, по 1MB.
    При max_size > 0 обрывает запись и удаляет файл при превышении
    """
    written = 0
    try:
        async with aiofiles.open(destination, 'wb') as out_file:
            while content := await upload_file.read(CHUNK_SIZE):
                written += len(content)
                if max_size and written > max_size:
                    raise UploadTooLargeError(upload_file.filename or destination.name, max_size)
                await out_file.write(content)
        return destination
    except Exception:
        if destination.exists():
            destination.unlink()
        raise


def cleanup_file(file_path: Path) -> bool:
    """
    Удаляет файл если он существует. Ошибки только логируются
    """
    try:
        file_path.unlink()
        return True
    except FileNotFoundError:
        logger.warning(f"File already removed: {file_path}")
    except OSError as e:
        logger.warning(f"Error cleaning up file {file_path}: {str(e)}")
    return False


def get_file_size_mb(file_path: Path) -> float:
    """
    Возвращает размер файла в MB
    """
    return file_path.stat().st_size / (1024 * 1024)
