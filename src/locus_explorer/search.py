"""Search, species filtering and debounced browsing over locus groups."""

import asyncio
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from .logging_config import get_logger
from .models import LocusGroup
from .pager import clamp_page, page, page_count

logger = get_logger('search')

ALL_SPECIES = "all"
DEFAULT_DISPLAY_CEILING = 500
DEFAULT_MAX_RESULTS = 2000
DEFAULT_DEBOUNCE_SECONDS = 0.3


def group_matches(group: LocusGroup, needle: str) -> bool:
    """Check a lower-cased needle against every searchable field of a group."""
    if needle in group.display_name.lower() or needle in group.root_id.lower():
        return True

    for isoform in group.isoforms:
        if needle in isoform.id.lower():
            return True
        for annotation in isoform.annotations:
            for value in (annotation.feature, annotation.feature_id, annotation.database,
                          annotation.ko, annotation.definition):
                if value and needle in value.lower():
                    return True

    return False


@dataclass
class ResultSummary:
    """Counts shown next to a result list."""
    shown: int
    total_groups: int
    capped: bool

    def __str__(self) -> str:
        text = f"Showing {self.shown} of {self.total_groups} total"
        return text + " (truncated)" if self.capped else text


class SearchIndex:
    """Read-only search over a snapshot of locus groups."""

    def __init__(self,
                 groups: Sequence[LocusGroup],
                 display_ceiling: int = DEFAULT_DISPLAY_CEILING,
                 max_results: int = DEFAULT_MAX_RESULTS):
        """
        Initialize search index.

        Args:
            groups: Group snapshot, already in display order
            display_ceiling: Groups shown when no query or filter is active
            max_results: Maximum number of matches returned
        """
        self.groups = tuple(groups)
        self.display_ceiling = display_ceiling
        self.max_results = max_results
        # Limit that cut the most recent search short, if any
        self.last_limit: Optional[int] = None

    @classmethod
    def from_config(cls, groups: Sequence[LocusGroup], config) -> 'SearchIndex':
        return cls(groups, config.search.display_ceiling, config.search.max_results)

    def search(self, query: Optional[str] = "", species: Optional[str] = ALL_SPECIES) -> List[LocusGroup]:
        """
        Case-insensitive substring search with an exact species filter.

        Args:
            query: Text to look for; empty matches everything
            species: Species tag, or "all"

        Returns:
            Matching groups in index order, silently capped
        """
        needle = (query or "").strip().lower()
        species = species or ALL_SPECIES

        self.last_limit = None
        if not needle and species == ALL_SPECIES:
            if len(self.groups) > self.display_ceiling:
                self.last_limit = self.display_ceiling
            return list(self.groups[:self.display_ceiling])

        results = []
        for group in self.groups:
            if species != ALL_SPECIES and species not in group.species:
                continue
            if needle and not group_matches(group, needle):
                continue
            results.append(group)
            if len(results) >= self.max_results:
                self.last_limit = self.max_results
                logger.debug(f"Search {needle!r} capped at {self.max_results} results")
                break

        return results

    def available_species(self) -> List[str]:
        """Sorted species tags present in the index."""
        species = set()
        for group in self.groups:
            species.update(group.species)
        return sorted(species)

    def summarize(self, results: Sequence[LocusGroup]) -> ResultSummary:
        """Summarize results of the most recent search on this index."""
        limit = self.last_limit
        return ResultSummary(
            shown=len(results),
            total_groups=len(self.groups),
            capped=limit is not None and len(results) >= limit and len(self.groups) > len(results)
        )


class Debouncer:
    """Delays calls so only the most recent one within the window runs."""

    def __init__(self, delay: float = DEFAULT_DEBOUNCE_SECONDS):
        self.delay = delay
        self.cancelled = 0
        self._task: Optional[asyncio.Task] = None

    def submit(self, func: Callable, *args) -> asyncio.Task:
        """Schedule ``func(*args)`` after the delay, cancelling any pending call."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
            self.cancelled += 1
        self._task = asyncio.ensure_future(self._run(func, args))
        return self._task

    async def _run(self, func: Callable, args: tuple):
        await asyncio.sleep(self.delay)
        return func(*args)

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    async def wait(self):
        """Wait for the latest scheduled call and return its result."""
        while self._task is not None:
            task = self._task
            try:
                return await task
            except asyncio.CancelledError:
                # Superseded; a newer task has replaced it
                if task is self._task:
                    raise
        return None


class BrowseSession:
    """Query, species filter and active page for one consumer.

    Search requests are debounced and always evaluated against a fresh
    snapshot from ``source``. Changing the query or the species filter
    resets the active page to 1.
    """

    def __init__(self,
                 source: Callable[[], Sequence[LocusGroup]],
                 page_size: int = 10,
                 display_ceiling: int = DEFAULT_DISPLAY_CEILING,
                 max_results: int = DEFAULT_MAX_RESULTS,
                 debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
                 on_results: Optional[Callable[[List[LocusGroup]], None]] = None):
        self.source = source
        self.page_size = page_size
        self.display_ceiling = display_ceiling
        self.max_results = max_results
        self.on_results = on_results
        self.debouncer = Debouncer(debounce_seconds)

        self.query = ""
        self.species = ALL_SPECIES
        self.page_number = 1
        self.results: List[LocusGroup] = []
        self.index: Optional[SearchIndex] = None
        self.evaluations = 0
        self._token = 0

    @classmethod
    def from_config(cls, source: Callable[[], Sequence[LocusGroup]], config, **kwargs) -> 'BrowseSession':
        return cls(
            source,
            page_size=config.search.page_size,
            display_ceiling=config.search.display_ceiling,
            max_results=config.search.max_results,
            debounce_seconds=config.search.debounce_seconds,
            **kwargs
        )

    def set_query(self, query: str) -> asyncio.Task:
        if query != self.query:
            self.page_number = 1
        self.query = query
        return self._schedule()

    def set_species(self, species: str) -> asyncio.Task:
        species = species or ALL_SPECIES
        if species != self.species:
            self.page_number = 1
        self.species = species
        return self._schedule()

    def _schedule(self) -> asyncio.Task:
        self._token += 1
        return self.debouncer.submit(self._evaluate, self._token, self.query, self.species)

    def _evaluate(self, token: int, query: str, species: str) -> List[LocusGroup]:
        if token != self._token:
            return self.results

        self.index = SearchIndex(self.source(), self.display_ceiling, self.max_results)
        self.results = self.index.search(query, species)
        self.evaluations += 1
        self.page_number = clamp_page(self.page_number, len(self.results), self.page_size)

        if self.on_results is not None:
            self.on_results(self.results)
        return self.results

    async def settled(self) -> List[LocusGroup]:
        """Wait for any pending debounced search."""
        await self.debouncer.wait()
        return self.results

    def refresh(self) -> List[LocusGroup]:
        """Re-run the current search immediately, e.g. after a batch lands."""
        self._token += 1
        return self._evaluate(self._token, self.query, self.species)

    def summary(self) -> ResultSummary:
        if self.index is None:
            return ResultSummary(shown=0, total_groups=len(self.source()), capped=False)
        return self.index.summarize(self.results)

    @property
    def page_count(self) -> int:
        return page_count(len(self.results), self.page_size)

    def go_to_page(self, page_number: int) -> int:
        self.page_number = clamp_page(page_number, len(self.results), self.page_size)
        return self.page_number

    def current_page(self) -> List[LocusGroup]:
        return page(self.results, self.page_number, self.page_size)
