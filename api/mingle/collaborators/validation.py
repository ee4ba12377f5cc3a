from __future__ import annotations

from typing import Protocol

from ..config import MESSAGE_MAX_LENGTH
from ..services.errors import ValidationFailed


class TextValidator(Protocol):
    def validate(self, text: str) -> str:
        """Return the text to persist or raise ``ValidationFailed``."""
        ...


class BasicTextValidator:
    def __init__(self, max_length: int = MESSAGE_MAX_LENGTH) -> None:
        self.max_length = max_length

    def validate(self, text: str) -> str:
        body = str(text or "").strip()
        if not body:
            raise ValidationFailed("Message body required")
        if len(body) > self.max_length:
            raise ValidationFailed("Message too long")
        return body
