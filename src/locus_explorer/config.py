"""Configuration management for the locus explorer."""

import json
import os
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Optional


@dataclass
class SourceConfig:
    """Where data files come from."""
    data_dir: Optional[str] = None
    base_url: Optional[str] = None
    headers_file: str = "all_protein_headers.json"
    species_file: str = "species_database.json"


@dataclass
class LoaderConfig:
    """Network settings for the HTTP fetcher."""
    timeout_seconds: float = 30.0
    max_retries: int = 3
    backoff_factor: float = 1.0


@dataclass
class BatchConfig:
    """Incremental loading settings."""
    batch_size: int = 100
    annotation_shards: int = 17


@dataclass
class SearchConfig:
    """Search, debounce and paging settings."""
    display_ceiling: int = 500
    max_results: int = 2000
    debounce_seconds: float = 0.3
    page_size: int = 10


@dataclass
class OutputConfig:
    """Export settings."""
    format: str = "tsv"
    sequence_type: str = "protein"


@dataclass
class Config:
    """Main configuration container."""
    source: SourceConfig
    loader: LoaderConfig
    batch: BatchConfig
    search: SearchConfig
    output: OutputConfig

    @classmethod
    def default(cls) -> 'Config':
        """Create default configuration."""
        return cls(
            source=SourceConfig(),
            loader=LoaderConfig(),
            batch=BatchConfig(),
            search=SearchConfig(),
            output=OutputConfig()
        )

    @classmethod
    def from_file(cls, path: Path) -> 'Config':
        """Load configuration from JSON file."""
        if not path.exists():
            return cls.default()

        with open(path, 'r') as f:
            data = json.load(f)

        return cls(
            source=SourceConfig(**data.get('source', {})),
            loader=LoaderConfig(**data.get('loader', {})),
            batch=BatchConfig(**data.get('batch', {})),
            search=SearchConfig(**data.get('search', {})),
            output=OutputConfig(**data.get('output', {}))
        )

    def to_file(self, path: Path) -> None:
        """Save configuration to JSON file."""
        path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            'source': asdict(self.source),
            'loader': asdict(self.loader),
            'batch': asdict(self.batch),
            'search': asdict(self.search),
            'output': asdict(self.output)
        }

        with open(path, 'w') as f:
            json.dump(data, f, indent=2)

    def merge_env_vars(self) -> None:
        """Merge environment variables into configuration."""
        if os.getenv('LOCUS_DATA_DIR'):
            self.source.data_dir = os.getenv('LOCUS_DATA_DIR')
        if os.getenv('LOCUS_BASE_URL'):
            self.source.base_url = os.getenv('LOCUS_BASE_URL')

        if os.getenv('LOCUS_BATCH_SIZE'):
            self.batch.batch_size = int(os.getenv('LOCUS_BATCH_SIZE'))
        if os.getenv('LOCUS_MAX_RESULTS'):
            self.search.max_results = int(os.getenv('LOCUS_MAX_RESULTS'))
        if os.getenv('LOCUS_TIMEOUT'):
            self.loader.timeout_seconds = float(os.getenv('LOCUS_TIMEOUT'))

    def merge_cli_args(self, **kwargs) -> None:
        """Merge CLI arguments into configuration."""
        if kwargs.get('data_dir'):
            self.source.data_dir = kwargs['data_dir']
        if kwargs.get('base_url'):
            self.source.base_url = kwargs['base_url']

        if kwargs.get('batch_size'):
            self.batch.batch_size = kwargs['batch_size']

        if kwargs.get('page_size'):
            self.search.page_size = kwargs['page_size']
        if kwargs.get('max_results'):
            self.search.max_results = kwargs['max_results']

        if kwargs.get('output_format'):
            self.output.format = kwargs['output_format']
        if kwargs.get('sequence_type'):
            self.output.sequence_type = kwargs['sequence_type']


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    locations = [
        Path.home() / '.locus_explorer' / 'config.json',
        Path.home() / '.config' / 'locus_explorer' / 'config.json',
        Path('.locus_explorer.json'),
        Path('locus_explorer.config.json')
    ]

    for path in locations:
        if path.exists():
            return path

    return Path.home() / '.locus_explorer' / 'config.json'


def create_example_config(path: Optional[Path] = None) -> Path:
    """Create an example configuration file."""
    if path is None:
        path = Path('locus_explorer.config.example.json')

    config = Config.default()

    config.source.data_dir = "./data"
    config.source.base_url = None
    config.batch.batch_size = 100
    config.search.max_results = 2000

    config.to_file(path)
    return path
