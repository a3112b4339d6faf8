"""Memoizing asynchronous file loader with permanent-failure tracking."""

import asyncio
import inspect
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urljoin

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .error_handler import ErrorHandler, ErrorType, get_error_handler
from .logging_config import LogTimer, get_logger, log_cache_hit
from .models import LoadState

logger = get_logger('file_loader')


class FetchError(Exception):
    """Raised by a fetcher when a file cannot be retrieved."""

    def __init__(self, filename: str, reason: str, status_code: Optional[int] = None):
        self.filename = filename
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"{filename}: {reason}")


class _Unavailable:
    """Falsy marker for data that could not be loaded."""

    __slots__ = ()

    def __bool__(self):
        return False

    def __repr__(self):
        return "UNAVAILABLE"


UNAVAILABLE = _Unavailable()


def is_available(value: Any) -> bool:
    return value is not UNAVAILABLE


@dataclass
class NetworkConfig:
    """Configuration for HTTP fetching."""
    timeout: float = 30.0
    max_retries: int = 3
    backoff_factor: float = 1.0
    retry_on_status: tuple = (408, 429, 500, 502, 503, 504)
    verify_ssl: bool = True
    connection_pool_size: int = 10


class HttpFetcher:
    """Fetches data files relative to a base URL."""

    def __init__(self, base_url: str, config: Optional[NetworkConfig] = None,
                 session: Optional[requests.Session] = None):
        """
        Initialize HTTP fetcher.

        Args:
            base_url: URL the data filenames are resolved against
            config: Network configuration
            session: Pre-built session (mainly for testing)
        """
        self.base_url = base_url if base_url.endswith('/') else base_url + '/'
        self.config = config or NetworkConfig()
        self.session = session or self._create_session()

    def _create_session(self) -> requests.Session:
        """Create session with retry configuration."""
        session = requests.Session()

        retry_strategy = Retry(
            total=self.config.max_retries,
            backoff_factor=self.config.backoff_factor,
            status_forcelist=list(self.config.retry_on_status),
            allowed_methods=["GET", "HEAD"]
        )

        adapter = HTTPAdapter(
            pool_connections=self.config.connection_pool_size,
            pool_maxsize=self.config.connection_pool_size,
            max_retries=retry_strategy
        )

        session.mount("http://", adapter)
        session.mount("https://", adapter)
        session.verify = self.config.verify_ssl

        return session

    def url_for(self, filename: str) -> str:
        return urljoin(self.base_url, filename.lstrip('/'))

    def fetch(self, filename: str) -> str:
        """Fetch the text of a file or raise FetchError."""
        url = self.url_for(filename)

        try:
            response = self.session.get(url, timeout=self.config.timeout)
        except requests.exceptions.RequestException as e:
            raise FetchError(filename, f"request failed: {e}") from e

        if not response.ok:
            raise FetchError(filename, f"HTTP status {response.status_code}",
                             status_code=response.status_code)

        return response.text


class LocalFileFetcher:
    """Fetches data files from a local directory."""

    def __init__(self, data_dir: str, encoding: str = "utf-8"):
        self.data_dir = Path(data_dir)
        self.encoding = encoding

    def fetch(self, filename: str) -> str:
        """Read the text of a file or raise FetchError."""
        path = self.data_dir / filename.lstrip('/')

        try:
            return path.read_text(encoding=self.encoding)
        except FileNotFoundError as e:
            raise FetchError(filename, "file not found") from e
        except (OSError, UnicodeDecodeError) as e:
            raise FetchError(filename, f"cannot read file: {e}") from e


@dataclass
class LoaderStats:
    """Loader statistics."""
    hit_count: int = 0
    miss_count: int = 0
    coalesced_count: int = 0
    fetch_count: int = 0
    failure_count: int = 0
    total_bytes: int = 0

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        total_requests = self.hit_count + self.miss_count
        return self.hit_count / total_requests if total_requests > 0 else 0.0

    @property
    def size_mb(self) -> float:
        return self.total_bytes / (1024 * 1024)


class FileLoader:
    """Per-filename memoized loader.

    Keeps three keyed containers: parsed results, pending fetches and
    permanent failures. Concurrent requests for the same filename share one
    fetch; a failed filename is never fetched again by this instance; a
    failure is reported as ``UNAVAILABLE`` instead of being raised.
    """

    def __init__(self, fetcher, error_handler: Optional[ErrorHandler] = None):
        """
        Initialize loader.

        Args:
            fetcher: Object with ``fetch(filename) -> str | bytes``; blocking or async
            error_handler: Destination for failure records
        """
        self.fetcher = fetcher
        self.error_handler = error_handler or get_error_handler()
        self.stats = LoaderStats()
        self._cache: Dict[str, Any] = {}
        self._in_flight: Dict[str, asyncio.Future] = {}
        self._failed: Dict[str, str] = {}

    async def load(self, filename: str) -> Any:
        """Load and parse a JSON file, or return UNAVAILABLE."""
        if filename in self._cache:
            self.stats.hit_count += 1
            log_cache_hit(filename, True)
            return self._cache[filename]

        if filename in self._failed:
            return UNAVAILABLE

        pending = self._in_flight.get(filename)
        if pending is None:
            self.stats.miss_count += 1
            log_cache_hit(filename, False)
            pending = asyncio.ensure_future(self._resolve(filename))
            self._in_flight[filename] = pending
        else:
            self.stats.coalesced_count += 1

        # A cancelled caller must not cancel the shared fetch
        return await asyncio.shield(pending)

    async def load_many(self, filenames: Iterable[str]) -> Dict[str, Any]:
        """Load several files concurrently, returning filename -> result."""
        unique: List[str] = list(dict.fromkeys(filenames))
        results = await asyncio.gather(*(self.load(name) for name in unique))
        return dict(zip(unique, results))

    async def _resolve(self, filename: str) -> Any:
        try:
            self.stats.fetch_count += 1
            with LogTimer(f"Fetch {filename}", logger):
                text = await self._fetch(filename)
            data = json.loads(text)
            size = len(text) if isinstance(text, bytes) else len(text.encode('utf-8'))
        except FetchError as e:
            error_type = ErrorType.HTTP_ERROR if e.status_code else None
            return self._fail(filename, e, error_type)
        except ValueError as e:
            return self._fail(filename, e, ErrorType.PARSE_ERROR)
        except Exception as e:
            return self._fail(filename, e, None)
        else:
            self._cache[filename] = data
            self.stats.total_bytes += size
            return data
        finally:
            self._in_flight.pop(filename, None)

    async def _fetch(self, filename: str) -> str:
        fetch = self.fetcher.fetch
        if inspect.iscoroutinefunction(fetch):
            return await fetch(filename)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, fetch, filename)

    def _fail(self, filename: str, error: Exception, error_type: Optional[ErrorType]) -> Any:
        self._failed[filename] = str(error)
        self.stats.failure_count += 1
        self.error_handler.handle_error(
            error,
            operation="load_file",
            filename=filename,
            error_type=error_type
        )
        return UNAVAILABLE

    def state(self, filename: str) -> LoadState:
        """Get the load state of a filename."""
        if filename in self._cache:
            return LoadState.LOADED
        if filename in self._failed:
            return LoadState.FAILED
        if filename in self._in_flight:
            return LoadState.LOADING
        return LoadState.NOT_STARTED

    def failures(self) -> Dict[str, str]:
        """Failed filenames and the reason each failed."""
        return dict(self._failed)

    def loaded_files(self) -> List[str]:
        return list(self._cache)

    def get_cached(self, filename: str) -> Any:
        return self._cache.get(filename, UNAVAILABLE)


def create_fetcher(data_dir: Optional[str] = None,
                   base_url: Optional[str] = None,
                   network_config: Optional[NetworkConfig] = None):
    """Build the fetcher for a local directory or a base URL."""
    if base_url:
        return HttpFetcher(base_url, network_config)
    if data_dir:
        return LocalFileFetcher(data_dir)
    raise ValueError("Either a data directory or a base URL is required")
