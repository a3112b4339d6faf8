"""Filtering over the germplasm species catalog."""

from typing import Any, Dict, Iterable, List, Optional, Set

from .file_loader import FileLoader, is_available
from .file_plan import SPECIES_DATABASE_FILE
from .logging_config import get_logger

logger = get_logger('species_catalog')


def _cell(record: Dict[str, Any], column: str) -> str:
    value = record.get(column)
    return "" if value is None else str(value)


class SpeciesCatalog:
    """Flat species records with global, per-column text and per-column value filters."""

    def __init__(self, records: Optional[Iterable[Dict[str, Any]]] = None):
        self.records: List[Dict[str, Any]] = [r for r in (records or []) if isinstance(r, dict)]
        self.global_filter = ""
        self.text_filters: Dict[str, str] = {}
        self.value_filters: Dict[str, Set[str]] = {}

    @classmethod
    async def load(cls, loader: FileLoader, filename: str = SPECIES_DATABASE_FILE) -> 'SpeciesCatalog':
        """Load the catalog; an unavailable or malformed file yields an empty catalog."""
        data = await loader.load(filename)
        if not is_available(data):
            return cls()
        if not isinstance(data, list):
            logger.warning(f"{filename}: expected a list of records, got {type(data).__name__}")
            return cls()
        return cls(data)

    @property
    def columns(self) -> List[str]:
        """Columns of the first record, in file order."""
        return list(self.records[0].keys()) if self.records else []

    def unique_values(self, column: str) -> List[str]:
        return sorted({_cell(record, column) for record in self.records})

    def set_text_filter(self, column: str, text: str):
        if text:
            self.text_filters[column] = text
        else:
            self.text_filters.pop(column, None)

    def toggle_value(self, column: str, value: str):
        selected = self.value_filters.setdefault(column, set())
        if value in selected:
            selected.remove(value)
        else:
            selected.add(value)
        if not selected:
            del self.value_filters[column]

    @property
    def active_filter_count(self) -> int:
        """Column filters in effect, not counting the global filter."""
        return (sum(1 for text in self.text_filters.values() if text)
                + sum(1 for values in self.value_filters.values() if values))

    def clear_filters(self):
        self.global_filter = ""
        self.text_filters.clear()
        self.value_filters.clear()

    def _matches(self, record: Dict[str, Any], columns: List[str]) -> bool:
        if self.global_filter:
            needle = self.global_filter.lower()
            if not any(needle in _cell(record, column).lower() for column in columns):
                return False

        for column, text in self.text_filters.items():
            if text and text.lower() not in _cell(record, column).lower():
                return False

        for column, values in self.value_filters.items():
            if values and _cell(record, column) not in values:
                return False

        return True

    def filtered(self) -> List[Dict[str, Any]]:
        columns = self.columns
        return [record for record in self.records if self._matches(record, columns)]
