"""Shared fixtures for the locus explorer tests."""

import asyncio
import json
import logging
from logging.handlers import RotatingFileHandler

import pytest

from locus_explorer.error_handler import ErrorHandler
from locus_explorer.file_loader import FetchError, FileLoader
from locus_explorer.identifiers import isoform_of, root_id_of
from locus_explorer.models import AnnotationFragment, CanonicalEntry


class FakeFetcher:
    """In-memory async fetcher that records every fetch."""

    def __init__(self, files=None, delay=0.0, broken=None):
        self.files = {}
        for name, value in (files or {}).items():
            self.files[name] = value if isinstance(value, str) else json.dumps(value)
        self.broken = dict(broken or {})
        self.delay = delay
        self.calls = []

    async def fetch(self, filename):
        self.calls.append(filename)
        await asyncio.sleep(self.delay)
        if filename in self.broken:
            raise FetchError(filename, self.broken[filename], status_code=500)
        if filename not in self.files:
            raise FetchError(filename, "file not found")
        return self.files[filename]

    def count(self, filename):
        return self.calls.count(filename)


@pytest.fixture
def error_handler():
    """Isolated error handler."""
    return ErrorHandler()


@pytest.fixture
def make_loader(error_handler):
    """Build a FileLoader over a FakeFetcher."""
    def factory(files=None, delay=0.0, broken=None):
        fetcher = FakeFetcher(files, delay=delay, broken=broken)
        return FileLoader(fetcher, error_handler=error_handler), fetcher
    return factory


@pytest.fixture
def make_entry():
    """Build a CanonicalEntry with optional annotations."""
    def factory(entry_id, species="a", definition="", ko="", database="", protein="", label=None):
        annotations = []
        if definition or ko or database:
            annotations.append(AnnotationFragment(database=database, definition=definition, ko=ko))
        entry = CanonicalEntry(
            id=entry_id,
            root_id=root_id_of(entry_id),
            isoform=isoform_of(entry_id),
            species=species,
            protein=protein,
            annotations=annotations
        )
        entry.label = label if label is not None else (definition or entry_id)
        return entry
    return factory


@pytest.fixture(autouse=True)
def restore_root_logging():
    """Drop handlers installed by setup_logging during a test."""
    root = logging.getLogger()
    level = root.level
    yield
    for handler in root.handlers[:]:
        if type(handler) in (logging.StreamHandler, logging.FileHandler, RotatingFileHandler):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
