import re

from unidecode import unidecode


def slugify(text: str, max_length: int | None = None) -> str:
    text = unidecode(text).lower()
    text = re.sub(r"[^a-z0-9]+", "-", text).strip("-")
    if max_length is not None:
        text = text[:max_length].rstrip("-")
    return text
