"""Tests for configuration management."""

import json
import tempfile
from pathlib import Path

import pytest

from locus_explorer.config import (
    Config, SourceConfig, LoaderConfig, BatchConfig, SearchConfig,
    OutputConfig, get_default_config_path, create_example_config
)


class TestConfig:
    """Test cases for configuration management."""
    
    @pytest.fixture
    def temp_dir(self):
        """Create a temporary directory."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield Path(tmpdir)
    
    def test_default_config(self):
        """Test default configuration creation."""
        config = Config.default()
        
        assert config.source.data_dir is None
        assert config.source.base_url is None
        assert config.source.headers_file == "all_protein_headers.json"
        assert config.source.species_file == "species_database.json"
        
        assert config.loader.timeout_seconds == 30.0
        assert config.loader.max_retries == 3
        
        assert config.batch.batch_size == 100
        assert config.batch.annotation_shards == 17
        
        assert config.search.display_ceiling == 500
        assert config.search.max_results == 2000
        assert config.search.debounce_seconds == 0.3
        assert config.search.page_size == 10
        
        assert config.output.format == "tsv"
        assert config.output.sequence_type == "protein"
    
    def test_config_to_file(self, temp_dir):
        """Test saving configuration to file."""
        config = Config.default()
        config_file = temp_dir / "nested" / "config.json"
        
        config.to_file(config_file)
        
        assert config_file.exists()
        
        with open(config_file) as f:
            data = json.load(f)
        
        assert data['batch']['batch_size'] == 100
        assert data['search']['max_results'] == 2000
        assert data['source']['data_dir'] is None
    
    def test_config_from_file(self, temp_dir):
        """Test loading configuration from file."""
        config_data = {
            'source': {'base_url': 'https://example.org/data/'},
            'loader': {'max_retries': 5},
            'batch': {'batch_size': 20},
            'search': {'page_size': 25},
            'output': {'format': 'json'}
        }
        
        config_file = temp_dir / "config.json"
        with open(config_file, 'w') as f:
            json.dump(config_data, f)
        
        config = Config.from_file(config_file)
        
        assert config.source.base_url == 'https://example.org/data/'
        assert config.source.headers_file == "all_protein_headers.json"
        assert config.loader.max_retries == 5
        assert config.batch.batch_size == 20
        assert config.batch.annotation_shards == 17
        assert config.search.page_size == 25
        assert config.output.format == 'json'
    
    def test_config_from_nonexistent_file(self):
        """Test loading from nonexistent file returns defaults."""
        config = Config.from_file(Path('nonexistent.json'))
        default = Config.default()
        
        assert config.batch.batch_size == default.batch.batch_size
        assert config.search.max_results == default.search.max_results
    
    def test_merge_env_vars(self, monkeypatch):
        """Test merging environment variables."""
        config = Config.default()
        
        monkeypatch.setenv('LOCUS_DATA_DIR', '/tmp/data')
        monkeypatch.setenv('LOCUS_BASE_URL', 'https://example.org/')
        monkeypatch.setenv('LOCUS_BATCH_SIZE', '50')
        monkeypatch.setenv('LOCUS_MAX_RESULTS', '10')
        monkeypatch.setenv('LOCUS_TIMEOUT', '2.5')
        
        config.merge_env_vars()
        
        assert config.source.data_dir == '/tmp/data'
        assert config.source.base_url == 'https://example.org/'
        assert config.batch.batch_size == 50
        assert config.search.max_results == 10
        assert config.loader.timeout_seconds == 2.5
    
    def test_merge_cli_args(self):
        """Test merging CLI arguments."""
        config = Config.default()
        
        config.merge_cli_args(
            data_dir='cli_data',
            batch_size=7,
            page_size=3,
            max_results=9,
            output_format='fasta',
            sequence_type='nucleotide'
        )
        
        assert config.source.data_dir == 'cli_data'
        assert config.batch.batch_size == 7
        assert config.search.page_size == 3
        assert config.search.max_results == 9
        assert config.output.format == 'fasta'
        assert config.output.sequence_type == 'nucleotide'
    
    def test_merge_cli_args_ignores_none(self):
        """Test that unset CLI options keep configured values."""
        config = Config.default()
        config.source.data_dir = 'configured'
        
        config.merge_cli_args(data_dir=None, batch_size=None)
        
        assert config.source.data_dir == 'configured'
        assert config.batch.batch_size == 100
    
    def test_sections_construct_independently(self):
        """Test that section dataclasses have usable defaults."""
        config = Config(SourceConfig(data_dir='d'), LoaderConfig(), BatchConfig(batch_size=1),
                        SearchConfig(), OutputConfig())
        assert config.source.data_dir == 'd'
        assert config.batch.batch_size == 1
    
    def test_create_example_config(self, temp_dir):
        """Test creating example configuration."""
        config_file = temp_dir / "example.json"
        result_path = create_example_config(config_file)
        
        assert result_path == config_file
        assert config_file.exists()
        
        with open(config_file) as f:
            data = json.load(f)
        
        assert data['source']['data_dir'] == "./data"
        assert data['batch']['batch_size'] == 100
    
    def test_get_default_config_path(self, monkeypatch):
        """Test getting default config path."""
        # Mock Path.exists to return False for all paths
        monkeypatch.setattr(Path, 'exists', lambda self: False)
        
        path = get_default_config_path()
        expected = Path.home() / '.locus_explorer' / 'config.json'
        
        assert path == expected
