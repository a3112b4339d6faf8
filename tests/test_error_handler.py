"""Tests for error handling."""

import json
import logging

import pytest

from locus_explorer.error_handler import (
    ErrorHandler, ErrorType, ErrorSeverity, get_error_handler, setup_error_handler
)
from locus_explorer.file_loader import FetchError


class TestErrorHandler:
    """Test cases for error handler."""
    
    @pytest.fixture
    def handler(self):
        """Create error handler for testing."""
        return ErrorHandler(max_history=50)
    
    def test_error_classification(self, handler):
        """Test error type classification."""
        # Missing file
        assert handler._classify_error(FileNotFoundError("nope")) == ErrorType.FILE_UNAVAILABLE
        assert handler._classify_error(FetchError("a.json", "file not found")) == ErrorType.FILE_UNAVAILABLE
        
        # Network
        error = FetchError("a.json", "request failed: Connection refused")
        assert handler._classify_error(error) == ErrorType.NETWORK_ERROR
        assert handler._classify_error(TimeoutError("timed out")) == ErrorType.NETWORK_ERROR
        
        # HTTP status
        assert handler._classify_error(FetchError("a.json", "HTTP status 503")) == ErrorType.HTTP_ERROR
        
        # Parse
        try:
            json.loads("{bad")
        except json.JSONDecodeError as e:
            assert handler._classify_error(e) == ErrorType.PARSE_ERROR
        
        # Unknown
        assert handler._classify_error(Exception("Something went wrong")) == ErrorType.UNKNOWN
    
    def test_severity_determination(self, handler):
        """Test that coverage-reducing errors are warnings."""
        assert handler._determine_severity(ErrorType.FILE_UNAVAILABLE) == ErrorSeverity.WARNING
        assert handler._determine_severity(ErrorType.HEADER_FALLBACK) == ErrorSeverity.WARNING
        assert handler._determine_severity(ErrorType.UNKNOWN) == ErrorSeverity.ERROR
    
    def test_handle_error(self, handler):
        """Test error handling."""
        error = FetchError("LGE02_proteins.json", "HTTP status 404", status_code=404)
        
        context = handler.handle_error(
            error,
            operation="load_file",
            filename="LGE02_proteins.json",
            error_type=ErrorType.HTTP_ERROR,
            attempt=1
        )
        
        assert context.error_type == ErrorType.HTTP_ERROR
        assert context.severity == ErrorSeverity.WARNING
        assert context.message == "LGE02_proteins.json: HTTP status 404"
        assert context.operation == "load_file"
        assert context.filename == "LGE02_proteins.json"
        assert context.details == {'attempt': 1}
        assert context.suggestion is not None
        
        # Check error was added to history
        assert len(handler.error_history) == 1
    
    def test_record(self, handler):
        """Test recording a condition without an exception."""
        context = handler.record(ErrorType.MALFORMED_RECORD, "header without identifier dropped", operation="merge")
        
        assert context.exception is None
        assert handler.errors_of_type(ErrorType.MALFORMED_RECORD) == [context]
    
    def test_warning_is_logged(self, handler, caplog):
        """Test that warnings reach the logger."""
        with caplog.at_level(logging.WARNING):
            handler.record(ErrorType.FILE_UNAVAILABLE, "gone", operation="load_file", filename="x.json")
        assert "gone (file: x.json)" in caplog.text
    
    def test_history_bounded(self):
        """Test that history keeps only the newest entries."""
        handler = ErrorHandler(max_history=3)
        for i in range(5):
            handler.record(ErrorType.UNKNOWN, f"error {i}", operation="op")
        
        assert [e.message for e in handler.error_history] == ["error 2", "error 3", "error 4"]
    
    def test_error_summary(self, handler):
        """Test error summary generation."""
        assert handler.get_error_summary()['total_errors'] == 0
        
        handler.handle_error(FetchError("a.json", "file not found"), operation="load_file", filename="a.json")
        handler.handle_error(FetchError("b.json", "file not found"), operation="load_file", filename="b.json")
        handler.record(ErrorType.HEADER_FALLBACK, "fallback", operation="load_headers")
        
        summary = handler.get_error_summary()
        
        assert summary['total_errors'] == 3
        assert summary['by_type'][ErrorType.FILE_UNAVAILABLE.value] == 2
        assert summary['by_type'][ErrorType.HEADER_FALLBACK.value] == 1
        assert summary['by_severity'][ErrorSeverity.WARNING.value] == 3
        assert summary['failed_files'] == ["a.json", "b.json"]
        assert len(summary['recent_errors']) == 3
    
    def test_clear(self, handler):
        """Test clearing history."""
        handler.record(ErrorType.UNKNOWN, "x", operation="op")
        handler.clear()
        assert handler.error_history == []
    
    def test_error_report_export(self, handler, tmp_path):
        """Test error report export."""
        handler.handle_error(
            ValueError("Expecting value"),
            operation="load_file",
            filename="bad.json",
            error_type=ErrorType.PARSE_ERROR
        )
        
        # Export report
        report_file = tmp_path / "error_report.json"
        handler.export_error_report(str(report_file))
        
        # Check report file
        assert report_file.exists()
        
        with open(report_file, 'r') as f:
            report = json.load(f)
        
        assert 'generated_at' in report
        assert report['summary']['total_errors'] == 1
        assert len(report['detailed_errors']) == 1
        assert report['detailed_errors'][0]['operation'] == "load_file"
        assert report['detailed_errors'][0]['error_type'] == "parse_error"
        assert 'exception' not in report['detailed_errors'][0]


class TestGlobalErrorHandler:
    """Test global error handler functions."""
    
    def test_get_error_handler(self):
        """Test getting global error handler."""
        handler1 = get_error_handler()
        handler2 = get_error_handler()
        
        # Should return same instance
        assert handler1 is handler2
    
    def test_setup_error_handler(self):
        """Test setting up custom error handler."""
        handler = setup_error_handler(max_history=5)
        
        assert handler.max_history == 5
        
        # Should be the global instance
        assert get_error_handler() is handler
