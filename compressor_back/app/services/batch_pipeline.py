import asyncio
import logging
from typing import Callable, List, Sequence

from app.exceptions import TranscodeError, ValidationError
from app.models import (
    ArtifactKind,
    OutputArtifact,
    TranscodeFailure,
    TranscodeResult,
    TranscodeSuccess,
    UploadedFile,
)
from app.services.archive_builder import ArchiveBuilder, entry_name_for
from app.services.namer import new_name
from app.services.output_store import OutputStore
from app.services.transcoder import ImageTranscoder
from app.utils.file_handler import cleanup_file

logger = logging.getLogger(__name__)


class BatchPipeline:
    """
    Основной конвейер: один файл -> один .webp, несколько -> один .zip
    """

    def __init__(
        self,
        store: OutputStore,
        transcoder: ImageTranscoder,
        max_workers: int = 4,
        namer: Callable[[str], str] = new_name,
    ):
        self.store = store
        self.transcoder = transcoder
        self.max_workers = max(1, max_workers)
        self.namer = namer

    async def process(self, files: Sequence[UploadedFile], base_url: str = "") -> OutputArtifact:
        """
        Обрабатывает загруженные файлы и возвращает описание результата

        Raises:
            ValidationError: файлов нет или ни один не сконвертирован
            TranscodeError: единственный файл не удалось сконвертировать
            StoreWriteError, SerializationError: ошибки записи результата
        """
        if not files:
            raise ValidationError("no files")

        if len(files) == 1:
            return await self._process_single(files[0], base_url)
        return await self._process_bulk(files, base_url)

    async def _process_single(self, file: UploadedFile, base_url: str) -> OutputArtifact:
        logger.info(f"Processing single file: {file.original_name}")

        try:
            output_bytes = await asyncio.to_thread(self.transcoder.transcode, file.temporary_path)
        except TranscodeError as e:
            logger.error(f"Error compressing {file.original_name}: {e.reason}")
            raise TranscodeError(e.reason, file.original_name) from e
        finally:
            cleanup_file(file.temporary_path)

        stored_name = self.namer(self.transcoder.profile.extension)
        await asyncio.to_thread(self.store.write, stored_name, output_bytes)

        return OutputArtifact(
            kind=ArtifactKind.SINGLE,
            stored_name=stored_name,
            download_url=self.store.url_for(stored_name, base_url),
        )

    async def _process_bulk(self, files: Sequence[UploadedFile], base_url: str) -> OutputArtifact:
        logger.info(f"Processing bulk request: {len(files)} files, workers: {self.max_workers}")

        semaphore = asyncio.Semaphore(self.max_workers)

        async def run(file: UploadedFile) -> TranscodeResult:
            async with semaphore:
                return await self._transcode_one(file)

        # gather сохраняет порядок входа, архив собирается в том же порядке.
        # Непредвиденная ошибка пробрасывается только после завершения всех задач
        outcomes = await asyncio.gather(*(run(f) for f in files), return_exceptions=True)
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome
        results: List[TranscodeResult] = list(outcomes)

        archive = ArchiveBuilder()
        failures = []
        for result in results:
            if result.ok:
                archive.add(
                    entry_name_for(result.source_name, self.transcoder.profile.extension),
                    result.output_bytes,
                )
            else:
                failures.append(result)

        logger.info(f"Bulk request: {len(archive)} succeeded, {len(failures)} failed")

        if len(archive) == 0:
            raise ValidationError("no files succeeded")

        zip_data = await asyncio.to_thread(archive.serialize)
        zip_name = self.namer("zip")
        await asyncio.to_thread(self.store.write, zip_name, zip_data)

        return OutputArtifact(
            kind=ArtifactKind.BULK,
            stored_name=zip_name,
            download_url=self.store.url_for(zip_name, base_url),
            failures=tuple(failures),
        )

    async def _transcode_one(self, file: UploadedFile) -> TranscodeResult:
        """
        Конвертирует один файл bulk-запроса. Ошибка не пробрасывается,
        а возвращается как TranscodeFailure
        """
        try:
            output_bytes = await asyncio.to_thread(self.transcoder.transcode, file.temporary_path)
        except TranscodeError as e:
            logger.error(f"Error compressing {file.original_name}: {e.reason}")
            return TranscodeFailure(source_name=file.original_name, reason=e.reason)
        finally:
            # Исходник удаляется сразу после результата, не дожидаясь всей пачки
            cleanup_file(file.temporary_path)

        logger.info(f"Compressed {file.original_name}: {len(output_bytes)} bytes")
        return TranscodeSuccess(source_name=file.original_name, output_bytes=output_bytes)
