from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Union

from PIL import Image, ImageOps

from app.exceptions import TranscodeError

ImageSource = Union[bytes, str, Path]

# Ошибки, которыми Pillow сигнализирует о битом или неподдерживаемом файле
DECODE_ERRORS = (
    OSError,
    ValueError,
    SyntaxError,
    EOFError,
    Image.DecompressionBombError,
)


@dataclass(frozen=True)
class TranscodeProfile:
    max_width: int = 1600
    output_format: str = "webp"
    quality: int = 75

    @property
    def extension(self) -> str:
        return self.output_format.lower()


class ImageTranscoder:
    """
    Перекодирует изображения в единый формат с ограничением ширины.

    Не хранит состояния между вызовами, поэтому один экземпляр можно
    использовать из нескольких потоков одновременно.
    """

    def __init__(self, profile: TranscodeProfile = TranscodeProfile()):
        self.profile = profile

    def transcode(self, source: ImageSource) -> bytes:
        """
        Декодирует исходник и кодирует его по профилю

        Args:
            source: байты изображения или путь к файлу

        Returns:
            закодированные байты в формате профиля

        Raises:
            TranscodeError: если исходник не читается или кодирование упало
        """
        try:
            opened = Image.open(BytesIO(source) if isinstance(source, bytes) else source)
        except DECODE_ERRORS as e:
            raise TranscodeError(f"cannot open image: {e}") from e

        with opened as image:
            try:
                image.load()
                prepared = self._prepare(image)
            except DECODE_ERRORS as e:
                raise TranscodeError(f"cannot decode image: {e}") from e

        buffer = BytesIO()
        try:
            prepared.save(
                buffer,
                format=self.profile.output_format.upper(),
                quality=self.profile.quality,
            )
        except (OSError, ValueError, KeyError) as e:
            raise TranscodeError(f"cannot encode image: {e}") from e

        return buffer.getvalue()

    def _prepare(self, image: Image.Image) -> Image.Image:
        # Поворот по EXIF до ресайза, иначе ширина считается не по той оси
        image = ImageOps.exif_transpose(image)
        image = image.convert(self._target_mode(image))

        target = compute_target_size(*image.size, self.profile.max_width)
        if target != image.size:
            image = image.resize(target, Image.Resampling.LANCZOS)
        return image

    @staticmethod
    def _target_mode(image: Image.Image) -> str:
        if image.mode in ("RGBA", "LA", "PA"):
            return "RGBA"
        if image.mode == "P" and "transparency" in image.info:
            return "RGBA"
        return "RGB"


def compute_target_size(width: int, height: int, max_width: int):
    """
    Размер после ресайза: только уменьшение, пропорции сохраняются
    """
    if width <= max_width:
        return width, height
    return max_width, max(1, round(height * max_width / width))
