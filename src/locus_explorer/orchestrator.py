"""Incremental batch loading of headers into the locus index."""

import asyncio
import random
import time
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence, Tuple

from .error_handler import ErrorHandler, ErrorType, get_error_handler
from .file_loader import FileLoader, is_available
from .file_plan import HEADERS_FILE, files_for_batch
from .grouper import LocusGrouper
from .logging_config import ProgressLogger, get_logger, log_performance
from .merger import RecordMerger
from .models import LocusGroup, RawHeader

logger = get_logger('orchestrator')

FALLBACK_HEADER_COUNT = 100
FALLBACK_SOURCE_FILES = (
    "Locus_proteins.json",
    "Locus_sample_proteins.json",
    "Locus_test_proteins.json",
)


@dataclass
class BatchResult:
    """Outcome of one incremental batch."""
    batch_number: int
    header_count: int
    created: int = 0
    updated: int = 0
    dropped: int = 0
    files_loaded: List[str] = field(default_factory=list)
    files_failed: List[str] = field(default_factory=list)
    applied: bool = True
    duration: float = 0.0


def synthesize_headers(count: int = FALLBACK_HEADER_COUNT,
                       rng: Optional[random.Random] = None) -> List[RawHeader]:
    """Build placeholder headers used when the header list is unavailable.

    The two-decimal field embedded in each identifier is random.
    """
    rng = rng or random.Random()
    headers = []
    for i in range(1, count + 1):
        value = f"{rng.uniform(0, 100):.2f}"
        protein_id = f"Locus{i:05d}v1rpkm{value}_{(i % 10) + 1}"
        source_file = FALLBACK_SOURCE_FILES[(i - 1) % len(FALLBACK_SOURCE_FILES)]
        headers.append(RawHeader(id=protein_id, source_file=source_file))
    return headers


def parse_headers(data: Any) -> Optional[List[RawHeader]]:
    """Convert the header file payload; None when it is not a list."""
    if not isinstance(data, list):
        return None

    headers = []
    for item in data:
        if isinstance(item, dict):
            raw_id = item.get('protein_id') or item.get('id') or ""
            source = item.get('source_file') or item.get('source') or ""
            headers.append(RawHeader(id=str(raw_id).strip(), source_file=str(source).strip()))
        elif isinstance(item, str):
            headers.append(RawHeader(id=item.strip()))
        else:
            # Kept so the merger drops and reports it
            headers.append(RawHeader(id=""))
    return headers


class BatchOrchestrator:
    """Drives loading in fixed-size header batches.

    The orchestrator is the only writer of the index. Batches may be
    requested concurrently; each reserves its header slice before awaiting
    any file, and merging plus grouping run without suspension once the
    batch's files are resolved. Earlier batches are never revisited.
    """

    def __init__(self,
                 loader: FileLoader,
                 batch_size: int = 100,
                 annotation_shards: int = 17,
                 include_nucleotides: bool = True,
                 headers_file: str = HEADERS_FILE,
                 error_handler: Optional[ErrorHandler] = None):
        """
        Initialize orchestrator.

        Args:
            loader: Shared file loader
            batch_size: Headers per batch
            annotation_shards: Annotation shard files per species
            include_nucleotides: Load nucleotide CDS files
            headers_file: Master header list filename
            error_handler: Destination for non-fatal errors
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")

        self.loader = loader
        self.batch_size = batch_size
        self.annotation_shards = annotation_shards
        self.include_nucleotides = include_nucleotides
        self.headers_file = headers_file
        self.error_handler = error_handler or get_error_handler()
        self.merger = RecordMerger(self.error_handler)
        self.grouper = LocusGrouper()

        self.headers: Optional[List[RawHeader]] = None
        self.using_fallback = False
        self.batches: List[BatchResult] = []
        self._cursor = 0
        self._loaded = 0
        self._batch_counter = 0
        self._generation = 0
        self._progress: Optional[ProgressLogger] = None
        self._headers_task: Optional[asyncio.Future] = None

    @classmethod
    def from_config(cls, loader: FileLoader, config, **kwargs) -> 'BatchOrchestrator':
        """Create an orchestrator from a Config object."""
        return cls(
            loader,
            batch_size=config.batch.batch_size,
            annotation_shards=config.batch.annotation_shards,
            headers_file=config.source.headers_file,
            **kwargs
        )

    async def load_headers(self) -> List[RawHeader]:
        """Load the master header list, synthesizing headers if unavailable."""
        if self.headers is not None:
            return self.headers

        # Concurrent callers share one header load
        if self._headers_task is None or self._headers_task.done():
            self._headers_task = asyncio.ensure_future(self._load_headers())
        return await asyncio.shield(self._headers_task)

    async def _load_headers(self) -> List[RawHeader]:
        data = await self.loader.load(self.headers_file)
        headers = parse_headers(data) if is_available(data) else None

        if headers is None:
            reason = "unavailable" if not is_available(data) else "not a list"
            self.error_handler.record(
                ErrorType.HEADER_FALLBACK,
                f"header list {reason}, using {FALLBACK_HEADER_COUNT} synthetic headers",
                operation="load_headers",
                filename=self.headers_file
            )
            headers = synthesize_headers()
            self.using_fallback = True

        if self.headers is None:
            self.set_headers(headers)
        return self.headers

    def set_headers(self, headers: Sequence[RawHeader]):
        """Seed the orchestrator with an explicit header list."""
        self.headers = list(headers)
        self._progress = ProgressLogger(logger, len(self.headers), "Loading headers")
        logger.info(f"{len(self.headers)} headers to load in batches of {self.batch_size}")

    @property
    def progress(self) -> Tuple[int, int]:
        """(headers merged so far, total headers)."""
        total = len(self.headers) if self.headers is not None else 0
        return min(self._loaded, total), total

    @property
    def has_more(self) -> bool:
        return self.headers is None or self._cursor < len(self.headers)

    def _reserve(self) -> Tuple[int, List[RawHeader]]:
        start = self._cursor
        batch = self.headers[start:start + self.batch_size]
        self._cursor = start + len(batch)
        self._batch_counter += 1
        return self._batch_counter, batch

    async def load_next_batch(self) -> Optional[BatchResult]:
        """Load, merge and group the next batch. None when nothing is left."""
        if self.headers is None:
            await self.load_headers()

        if self._cursor >= len(self.headers):
            return None

        generation = self._generation
        batch_number, batch = self._reserve()
        start_time = time.time()

        filenames = files_for_batch(
            batch,
            shards=self.annotation_shards,
            include_nucleotides=self.include_nucleotides
        )
        loaded = await self.loader.load_many(filenames)

        result = BatchResult(
            batch_number=batch_number,
            header_count=len(batch),
            files_loaded=[name for name, data in loaded.items() if is_available(data)],
            files_failed=[name for name, data in loaded.items() if not is_available(data)],
        )

        if generation != self._generation:
            # Loaded files stay cached; the discarded index is left alone
            logger.info(f"Batch {batch_number} finished after abandonment, results discarded")
            result.applied = False
            return result

        self._apply(batch, loaded, result)
        result.duration = time.time() - start_time
        self.batches.append(result)

        log_performance(f"Batch {batch_number}", result.duration, len(batch))
        return result

    def _apply(self, batch: List[RawHeader], loaded: dict, result: BatchResult):
        merged = self.merger.merge(batch, loaded, existing=self.grouper.entries())

        for entry in merged.created:
            self.grouper.add(entry)
        for entry in merged.updated:
            self.grouper.refresh(entry)
        self.grouper.resort()

        result.created = len(merged.created)
        result.updated = len(merged.updated)
        result.dropped = merged.dropped
        self._loaded += len(batch)

        if self._progress is not None:
            self._progress.update(len(batch), merged.dropped, item=f"batch {result.batch_number}")
            if self._loaded >= len(self.headers):
                self._progress.complete()

        if result.files_failed:
            logger.debug(f"Batch {result.batch_number}: {len(result.files_failed)} files unavailable")

    async def load_batches(self, count: int) -> List[BatchResult]:
        """Load up to ``count`` further batches, one after another."""
        results = []
        for _ in range(count):
            result = await self.load_next_batch()
            if result is None:
                break
            results.append(result)
        return results

    async def load_all(self) -> List[BatchResult]:
        """Load every remaining batch."""
        results = []
        while True:
            result = await self.load_next_batch()
            if result is None:
                return results
            results.append(result)

    def abandon(self):
        """Stop applying in-flight batches to the current index."""
        self._generation += 1
        self._cursor = len(self.headers) if self.headers is not None else 0
        logger.info("Load sequence abandoned")

    def reset(self):
        """Start a fresh index over the same headers, keeping the loader cache."""
        self._generation += 1
        self.grouper = LocusGrouper()
        self.batches = []
        self._cursor = 0
        self._loaded = 0
        self._batch_counter = 0
        if self.headers is not None:
            self._progress = ProgressLogger(logger, len(self.headers), "Loading headers")

    def snapshot(self) -> Tuple[LocusGroup, ...]:
        """Immutable view of the current groups for readers."""
        return tuple(self.grouper.groups())

    def failed_files(self) -> dict:
        return self.loader.failures()
