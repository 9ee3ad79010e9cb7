"""Abstract base class for gateway statement parsers."""

from abc import ABC, abstractmethod
from typing import List

from app.schemas.statement import StatementLineCreate


class BaseParser(ABC):
    """Base interface that every statement-format parser must implement.

    Each parser is responsible for:
    1. Reading raw file bytes in its format (CSV, JSON)
    2. Mapping the gateway's column names onto StatementLineCreate
    3. Skipping malformed rows with a warning instead of failing the upload
    """

    format_name: str

    @abstractmethod
    def parse(self, file_content: bytes, filename: str, gateway: str) -> List[StatementLineCreate]:
        """Parse file content and return normalized statement lines.

        Args:
            file_content: Raw bytes of the uploaded file.
            filename: Original filename (kept as ``source_file``).
            gateway: Gateway the statement came from.
        """
        pass
