"""Исключения конвейера сжатия изображений."""


class CompressorError(Exception):
    """Базовая ошибка конвейера. status_code уходит в HTTP-ответ."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(CompressorError):
    """Запрос нельзя обработать: нет файлов или ни один не сконвертирован."""

    status_code = 400


class TranscodeError(CompressorError):
    """Исходник не декодируется как изображение или кодирование упало."""

    status_code = 400

    def __init__(self, reason: str, source_name: str = ""):
        self.reason = reason
        self.source_name = source_name
        message = f"{source_name}: {reason}" if source_name else reason
        super().__init__(message)


class StoreWriteError(CompressorError):
    """Не удалось записать результат в хранилище."""


class SerializationError(CompressorError):
    """Не удалось собрать архив."""
