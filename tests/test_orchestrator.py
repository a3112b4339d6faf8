"""Tests for incremental batch loading."""

import asyncio
import random
import re

import pytest

from locus_explorer.config import Config
from locus_explorer.error_handler import ErrorType
from locus_explorer.file_plan import HEADERS_FILE
from locus_explorer.models import RawHeader
from locus_explorer.orchestrator import (
    FALLBACK_HEADER_COUNT, BatchOrchestrator, parse_headers, synthesize_headers
)

PLACEHOLDER_ID = re.compile(r'^Locus\d{5}v1rpkm\d+\.\d{2}_\d+$')

PROTEINS = {
    "MSTRG.1.1.p1": {"sequence": "MKV"},
    "MSTRG.1.2.p1": {"sequence": "MKL"},
}


def header_file(*ids, source="a_proteins.fa"):
    return [{"protein_id": i, "source_file": source} for i in ids]


class TestEndToEnd:
    """Whole pipeline scenarios from header list to groups."""
    
    def test_two_isoforms_without_annotations(self, make_loader, error_handler):
        """Test one group whose display name is one of the raw ids."""
        loader, _ = make_loader({
            HEADERS_FILE: header_file("MSTRG.1.1.p1", "MSTRG.1.2.p1"),
            "a_proteins.json": PROTEINS,
        })
        orchestrator = BatchOrchestrator(loader, error_handler=error_handler)
        
        asyncio.run(orchestrator.load_all())
        groups = orchestrator.snapshot()
        
        assert len(groups) == 1
        group = groups[0]
        assert group.root_id == "MSTRG.1"
        assert group.total_isoforms == 2
        assert group.display_name in ("MSTRG.1.1.p1", "MSTRG.1.2.p1")
        assert {e.protein for e in group.isoforms} == {"MKV", "MKL"}
    
    @pytest.mark.parametrize("order", [
        ("MSTRG.1.1.p1", "MSTRG.1.2.p1"),
        ("MSTRG.1.2.p1", "MSTRG.1.1.p1"),
    ])
    @pytest.mark.parametrize("batch_size", [1, 100])
    def test_definition_names_group_in_any_order(self, make_loader, error_handler, order, batch_size):
        """Test that an annotation definition names the group regardless of order."""
        loader, _ = make_loader({
            HEADERS_FILE: header_file(*order),
            "a_proteins.json": PROTEINS,
            "annotations.json": {"MSTRG.1.1.p1": {"definition": "Kinase X"}},
        })
        orchestrator = BatchOrchestrator(loader, batch_size=batch_size, error_handler=error_handler)
        
        asyncio.run(orchestrator.load_all())
        
        group = orchestrator.snapshot()[0]
        assert group.display_name == "Kinase X"
        assert group.total_isoforms == 2
    
    def test_missing_files_reported_not_raised(self, make_loader, error_handler):
        """Test that unavailable files are listed on the batch result."""
        loader, _ = make_loader({
            HEADERS_FILE: header_file("MSTRG.1.1.p1"),
            "a_proteins.json": PROTEINS,
        })
        orchestrator = BatchOrchestrator(loader, annotation_shards=2, error_handler=error_handler)
        
        result = asyncio.run(orchestrator.load_next_batch())
        
        assert "a_proteins.json" in result.files_loaded
        assert "a_nucleotides-cds_a.json" in result.files_failed
        assert "a_annotations_part2.json" in result.files_failed
        assert "annotations.json" in orchestrator.failed_files()
        assert result.created == 1


class TestHeaders:
    """Test header loading and the synthetic fallback."""
    
    def test_fallback_when_headers_missing(self, make_loader, error_handler):
        """Test that 100 synthetic headers are used when the list is missing."""
        loader, _ = make_loader({})
        orchestrator = BatchOrchestrator(loader, error_handler=error_handler)
        
        headers = asyncio.run(orchestrator.load_headers())
        
        assert len(headers) == FALLBACK_HEADER_COUNT
        assert orchestrator.using_fallback
        assert all(PLACEHOLDER_ID.match(h.id) for h in headers)
        assert error_handler.errors_of_type(ErrorType.HEADER_FALLBACK)
    
    def test_fallback_headers_browsable(self, make_loader, error_handler):
        """Test that fallback headers still produce groups."""
        loader, _ = make_loader({})
        orchestrator = BatchOrchestrator(loader, error_handler=error_handler)
        
        asyncio.run(orchestrator.load_next_batch())
        
        assert orchestrator.progress == (100, 100)
        assert orchestrator.grouper.entry_count == 100
        assert not orchestrator.has_more
    
    def test_concurrent_batches_share_header_fallback(self, make_loader, error_handler):
        """Test that racing first batches build the fallback headers once."""
        loader, fetcher = make_loader({}, delay=0.01)
        orchestrator = BatchOrchestrator(loader, batch_size=50, error_handler=error_handler)

        async def run():
            return await asyncio.gather(orchestrator.load_next_batch(), orchestrator.load_next_batch())

        results = asyncio.run(run())

        assert sorted(r.batch_number for r in results) == [1, 2]
        assert orchestrator.progress == (100, 100)
        assert orchestrator.grouper.entry_count == 100
        assert len(error_handler.errors_of_type(ErrorType.HEADER_FALLBACK)) == 1
        assert fetcher.count(HEADERS_FILE) == 1

    def test_fallback_when_headers_not_a_list(self, make_loader, error_handler):
        """Test that a malformed header list also falls back."""
        loader, _ = make_loader({HEADERS_FILE: {"not": "a list"}})
        orchestrator = BatchOrchestrator(loader, error_handler=error_handler)
        
        asyncio.run(orchestrator.load_headers())
        
        assert orchestrator.using_fallback
    
    def test_synthesize_headers(self):
        """Test the synthetic header shape."""
        headers = synthesize_headers(12, random.Random(7))
        
        assert len(headers) == 12
        assert headers[0].id.startswith("Locus00001v1rpkm")
        assert headers[0].id.endswith("_2")
        assert headers[9].id.endswith("_1")
        assert headers[0].source_file != headers[1].source_file
    
    def test_parse_headers(self):
        """Test parsing of mixed header items."""
        parsed = parse_headers([
            {"protein_id": "a.1", "source_file": "x_proteins.fa"},
            {"id": "b.1", "source": "y.fa"},
            "c.1",
            7,
        ])
        
        assert parsed == [
            RawHeader("a.1", "x_proteins.fa"),
            RawHeader("b.1", "y.fa"),
            RawHeader("c.1"),
            RawHeader(""),
        ]
        assert parse_headers({"a": 1}) is None


class TestBatches:
    """Test batch progression, abandonment and reset."""
    
    @pytest.fixture
    def five_headers(self):
        return header_file(*(f"MSTRG.{i}.1.p1" for i in range(1, 6)))
    
    def test_invalid_batch_size(self, make_loader):
        """Test that a batch size below one is rejected."""
        loader, _ = make_loader({})
        with pytest.raises(ValueError):
            BatchOrchestrator(loader, batch_size=0)
    
    def test_progress_across_batches(self, make_loader, error_handler, five_headers):
        """Test progress counts and the end of loading."""
        loader, _ = make_loader({HEADERS_FILE: five_headers})
        orchestrator = BatchOrchestrator(loader, batch_size=2, error_handler=error_handler)
        
        async def run():
            seen = []
            while orchestrator.has_more:
                result = await orchestrator.load_next_batch()
                seen.append((result.batch_number, orchestrator.progress))
            return seen, await orchestrator.load_next_batch()
        
        seen, after = asyncio.run(run())
        
        assert seen == [(1, (2, 5)), (2, (4, 5)), (3, (5, 5))]
        assert after is None
        assert len(orchestrator.snapshot()) == 5
    
    def test_load_batches_count(self, make_loader, error_handler, five_headers):
        """Test loading a fixed number of batches."""
        loader, _ = make_loader({HEADERS_FILE: five_headers})
        orchestrator = BatchOrchestrator(loader, batch_size=2, error_handler=error_handler)
        
        results = asyncio.run(orchestrator.load_batches(2))
        
        assert [r.header_count for r in results] == [2, 2]
        assert orchestrator.has_more
    
    def test_files_fetched_once_across_batches(self, make_loader, error_handler, five_headers):
        """Test that later batches reuse files loaded by earlier ones."""
        loader, fetcher = make_loader({HEADERS_FILE: five_headers, "a_proteins.json": {}})
        orchestrator = BatchOrchestrator(loader, batch_size=1, error_handler=error_handler)
        
        asyncio.run(orchestrator.load_all())
        
        assert fetcher.count("a_proteins.json") == 1
        assert fetcher.count("a_nucleotides-cds_a.json") == 1
    
    def test_concurrent_batches(self, make_loader, error_handler):
        """Test two batches requested at once."""
        loader, fetcher = make_loader({
            HEADERS_FILE: header_file("MSTRG.1.1.p1", "MSTRG.1.2.p1"),
            "a_proteins.json": PROTEINS,
        }, delay=0.01)
        orchestrator = BatchOrchestrator(loader, batch_size=1, error_handler=error_handler)
        
        async def run():
            await orchestrator.load_headers()
            return await asyncio.gather(orchestrator.load_next_batch(), orchestrator.load_next_batch())
        
        results = asyncio.run(run())
        
        assert sorted(r.batch_number for r in results) == [1, 2]
        assert all(r.applied for r in results)
        assert orchestrator.snapshot()[0].total_isoforms == 2
        assert fetcher.count("a_proteins.json") == 1
    
    def test_abandoned_batch_not_applied(self, make_loader, error_handler, five_headers):
        """Test that a batch finishing after abandon() leaves the index untouched."""
        loader, _ = make_loader({HEADERS_FILE: five_headers}, delay=0.01)
        orchestrator = BatchOrchestrator(loader, batch_size=2, error_handler=error_handler)
        
        async def run():
            await orchestrator.load_headers()
            pending = asyncio.ensure_future(orchestrator.load_next_batch())
            await asyncio.sleep(0)
            orchestrator.abandon()
            return await pending
        
        result = asyncio.run(run())
        
        assert result.applied is False
        assert orchestrator.grouper.entry_count == 0
        assert not orchestrator.has_more
        assert orchestrator.batches == []
    
    def test_reset_rebuilds_from_cache(self, make_loader, error_handler, five_headers):
        """Test that reset starts a fresh index but keeps loaded files."""
        loader, fetcher = make_loader({HEADERS_FILE: five_headers, "a_proteins.json": {}})
        orchestrator = BatchOrchestrator(loader, batch_size=5, error_handler=error_handler)
        
        asyncio.run(orchestrator.load_all())
        orchestrator.reset()
        assert orchestrator.progress == (0, 5)
        assert orchestrator.snapshot() == ()
        
        asyncio.run(orchestrator.load_all())
        
        assert len(orchestrator.snapshot()) == 5
        assert fetcher.count("a_proteins.json") == 1
    
    def test_snapshot_is_immutable(self, make_loader, error_handler, five_headers):
        """Test that readers get a tuple."""
        loader, _ = make_loader({HEADERS_FILE: five_headers})
        orchestrator = BatchOrchestrator(loader, error_handler=error_handler)
        asyncio.run(orchestrator.load_all())
        assert isinstance(orchestrator.snapshot(), tuple)
    
    def test_from_config(self, make_loader):
        """Test construction from configuration."""
        loader, _ = make_loader({})
        config = Config.default()
        config.batch.batch_size = 25
        config.batch.annotation_shards = 3
        
        orchestrator = BatchOrchestrator.from_config(loader, config)
        
        assert orchestrator.batch_size == 25
        assert orchestrator.annotation_shards == 3
        assert orchestrator.headers_file == config.source.headers_file
