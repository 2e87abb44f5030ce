import io
import logging
import threading
import zipfile
from pathlib import PurePosixPath
from typing import List, Set, Tuple

from app.exceptions import SerializationError

logger = logging.getLogger(__name__)

# Фиксированная дата записей, чтобы одинаковый набор давал одинаковый архив
ZIP_TIMESTAMP = (1980, 1, 1, 0, 0, 0)


def entry_name_for(original_name: str, extension: str) -> str:
    """
    Имя записи в архиве: базовое имя оригинала с заменой расширения.

    "photos/cat.png" -> "cat.webp", "scan" -> "scan.webp"
    """
    extension = extension.lstrip(".")
    base = PurePosixPath(original_name.replace("\\", "/")).name
    if not base or base in (".", ".."):
        return f"image.{extension}"
    stem = PurePosixPath(base).stem if PurePosixPath(base).suffix else base
    # "photo." -> "photo", "..." -> ""
    stem = stem.rstrip(".")
    return f"{stem or 'image'}.{extension}"


class ArchiveBuilder:
    """
    Собирает ZIP из именованных буферов.

    Одинаковые имена не перезаписываются: вторая и последующие записи
    получают суффикс "_1", "_2" и т.д. (сравнение без учета регистра).
    """

    def __init__(self, compresslevel: int = 5):
        self.compresslevel = compresslevel
        self._entries: List[Tuple[str, bytes]] = []
        self._used: Set[str] = set()
        self._lock = threading.Lock()
        self._serialized = False

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def names(self) -> List[str]:
        return [name for name, _ in self._entries]

    def add(self, entry_name: str, data: bytes) -> str:
        """
        Добавляет запись и возвращает имя, под которым она реально сохранена
        """
        with self._lock:
            if self._serialized:
                raise SerializationError("archive is already serialized")

            name = self._unique_name(entry_name)
            self._used.add(name.casefold())
            self._entries.append((name, data))

        if name != entry_name:
            logger.info(f"Archive entry {entry_name} renamed to {name} to avoid collision")
        return name

    def _unique_name(self, entry_name: str) -> str:
        if entry_name.casefold() not in self._used:
            return entry_name

        path = PurePosixPath(entry_name)
        stem, suffix = (path.stem, path.suffix) if path.suffix else (entry_name, "")
        index = 1
        while f"{stem}_{index}{suffix}".casefold() in self._used:
            index += 1
        return f"{stem}_{index}{suffix}"

    def serialize(self) -> bytes:
        """
        Сериализует архив. Вызывается один раз после всех add.
        """
        with self._lock:
            if self._serialized:
                raise SerializationError("archive is already serialized")
            self._serialized = True
            entries = list(self._entries)

        buffer = io.BytesIO()
        try:
            with zipfile.ZipFile(buffer, 'w', zipfile.ZIP_DEFLATED, compresslevel=self.compresslevel) as zipf:
                for name, data in entries:
                    info = zipfile.ZipInfo(name, date_time=ZIP_TIMESTAMP)
                    info.compress_type = zipfile.ZIP_DEFLATED
                    info.external_attr = 0o644 << 16
                    zipf.writestr(info, data, compresslevel=self.compresslevel)
        except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError, ValueError) as e:
            raise SerializationError(f"cannot build archive: {e}") from e

        logger.info(f"Archive serialized: {len(entries)} entries, {buffer.tell()} bytes")
        return buffer.getvalue()
