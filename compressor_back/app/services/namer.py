import uuid


def new_name(extension: str) -> str:
    """
    Генерирует уникальное имя файла для хранилища, например
    "0b6f...e1.webp". Пользовательский ввод в имя не попадает.
    """
    extension = extension.lstrip(".")
    if not (extension.isascii() and extension.isalnum()):
        raise ValueError(f"Invalid extension: {extension!r}")
    return f"{uuid.uuid4()}.{extension.lower()}"
