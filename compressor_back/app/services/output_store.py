import logging
import os
import tempfile
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, Tuple

from app.exceptions import StoreWriteError

logger = logging.getLogger(__name__)


class OutputStore:
    """
    Плоская директория готовых файлов, ключ - сгенерированное имя.

    Раздается наружу статикой по пути public_path.
    """

    def __init__(self, root: Path, public_path: str = "/files"):
        self.root = Path(root)
        self.public_path = "/" + public_path.strip("/")

    def ensure(self):
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, name: str) -> Path:
        if not name or name in (".", "..") or "/" in name or "\\" in name:
            raise ValueError(f"Invalid stored name: {name!r}")
        return self.root / name

    def exists(self, name: str) -> bool:
        return self.path_for(name).is_file()

    @staticmethod
    def _is_artifact(path: Path) -> bool:
        # Скрытые .part - файлы, которые еще пишутся в write
        return path.is_file() and not path.name.startswith(".")

    def url_for(self, name: str, base_url: str = "") -> str:
        return f"{base_url.rstrip('/')}{self.public_path}/{name}"

    def write(self, name: str, data: bytes) -> Path:
        """
        Атомарно записывает файл: сначала во временный файл рядом,
        затем os.replace, чтобы под итоговым именем не было недописанных данных
        """
        target = self.path_for(name)
        tmp_path = None
        try:
            fd, tmp_path = tempfile.mkstemp(prefix=".", suffix=".part", dir=self.root)
            with os.fdopen(fd, 'wb') as out_file:
                out_file.write(data)
            os.replace(tmp_path, target)
        except OSError as e:
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            logger.error(f"Failed to write {target}: {e}", exc_info=True)
            raise StoreWriteError(f"cannot write output {name}: {e}") from e

        logger.info(f"Stored {target}, size: {len(data)} bytes")
        return target

    def remove_older_than(self, hours: int) -> Tuple[int, int]:
        """
        Удаляет файлы старше hours часов

        Returns:
            (количество удаленных файлов, освобождено байт)
        """
        if hours < 0:
            raise ValueError(f"hours must be >= 0, got {hours}")

        cutoff_time = datetime.now() - timedelta(hours=hours)
        removed_count = 0
        freed_space = 0

        if not self.root.exists():
            return removed_count, freed_space

        for output_file in self.root.iterdir():
            if not self._is_artifact(output_file):
                continue
            try:
                stat = output_file.stat()
                if datetime.fromtimestamp(stat.st_mtime) < cutoff_time:
                    output_file.unlink()
                    removed_count += 1
                    freed_space += stat.st_size
                    logger.info(f"Cleaned up old output: {output_file.name}")
            except OSError as e:
                logger.error(f"Error cleaning output {output_file}: {str(e)}")

        if removed_count > 0:
            logger.info(f"Cleanup completed: removed {removed_count} files, freed {freed_space / (1024*1024):.2f} MB")
        else:
            logger.info("Cleanup completed: no old outputs found")

        return removed_count, freed_space

    def storage_info(self) -> Dict:
        total_size = 0
        file_count = 0

        if self.root.exists():
            for f in self.root.iterdir():
                if self._is_artifact(f):
                    total_size += f.stat().st_size
                    file_count += 1

        return {
            'total_size_bytes': total_size,
            'total_size_mb': round(total_size / (1024 * 1024), 2),
            'file_count': file_count,
        }
