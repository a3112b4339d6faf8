"""Error classification and reporting for partial-load tolerance."""

import json
import logging
import time
import traceback
from dataclasses import dataclass, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorType(Enum):
    """Types of errors that can occur."""
    FILE_UNAVAILABLE = "file_unavailable"
    NETWORK_ERROR = "network_error"
    HTTP_ERROR = "http_error"
    PARSE_ERROR = "parse_error"
    MALFORMED_RECORD = "malformed_record"
    HEADER_FALLBACK = "header_fallback"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


@dataclass
class ErrorContext:
    """Context information for an error."""
    error_type: ErrorType
    severity: ErrorSeverity
    message: str
    timestamp: float
    operation: str
    item_id: Optional[str] = None
    filename: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    exception: Optional[Exception] = None
    traceback: Optional[str] = None
    suggestion: Optional[str] = None


SUGGESTIONS = {
    ErrorType.FILE_UNAVAILABLE: "File is missing. Records depending on it will lack those fields.",
    ErrorType.NETWORK_ERROR: "Network failure. The file will not be retried in this session.",
    ErrorType.HTTP_ERROR: "Server returned an error status. The file will not be retried in this session.",
    ErrorType.PARSE_ERROR: "File is not valid JSON. Its data is skipped.",
    ErrorType.MALFORMED_RECORD: "Record skipped. The rest of the batch is processed.",
    ErrorType.HEADER_FALLBACK: "Header list unavailable. Using synthetic sample headers.",
    ErrorType.UNKNOWN: "Unexpected error. Logged and skipped.",
}


class ErrorHandler:
    """Records non-fatal errors with classification and logging."""

    # Kinds that only reduce data coverage
    WARNING_TYPES = {
        ErrorType.FILE_UNAVAILABLE,
        ErrorType.NETWORK_ERROR,
        ErrorType.HTTP_ERROR,
        ErrorType.PARSE_ERROR,
        ErrorType.MALFORMED_RECORD,
        ErrorType.HEADER_FALLBACK,
    }

    def __init__(self, max_history: int = 1000):
        """
        Initialize error handler.

        Args:
            max_history: Maximum number of errors kept in history
        """
        self.max_history = max_history
        self.error_history: List[ErrorContext] = []
        self.logger = logging.getLogger(__name__)
        self.error_logger = logging.getLogger(f"{__name__}.errors")

    def handle_error(self,
                     error: Exception,
                     operation: str,
                     item_id: Optional[str] = None,
                     filename: Optional[str] = None,
                     error_type: Optional[ErrorType] = None,
                     **kwargs) -> ErrorContext:
        """
        Handle an exception with classification and logging.

        Args:
            error: The exception that occurred
            operation: The operation being performed
            item_id: Optional record identifier
            filename: Optional data file name
            error_type: Override automatic classification
            **kwargs: Additional context data

        Returns:
            ErrorContext with error details and suggestion
        """
        if error_type is None:
            error_type = self._classify_error(error)

        severity = self._determine_severity(error_type)

        context = ErrorContext(
            error_type=error_type,
            severity=severity,
            message=str(error) or type(error).__name__,
            timestamp=time.time(),
            operation=operation,
            item_id=item_id,
            filename=filename,
            details=kwargs or None,
            exception=error,
            traceback=traceback.format_exc() if severity == ErrorSeverity.ERROR else None,
            suggestion=SUGGESTIONS.get(error_type)
        )

        self._log_error(context)
        self._remember(context)
        return context

    def record(self,
               error_type: ErrorType,
               message: str,
               operation: str,
               item_id: Optional[str] = None,
               filename: Optional[str] = None,
               **kwargs) -> ErrorContext:
        """Record a condition that did not originate from an exception."""
        context = ErrorContext(
            error_type=error_type,
            severity=self._determine_severity(error_type),
            message=message,
            timestamp=time.time(),
            operation=operation,
            item_id=item_id,
            filename=filename,
            details=kwargs or None,
            suggestion=SUGGESTIONS.get(error_type)
        )

        self._log_error(context)
        self._remember(context)
        return context

    def _classify_error(self, error: Exception) -> ErrorType:
        """Classify the error type based on exception."""
        error_str = str(error).lower()
        error_type_name = type(error).__name__

        if isinstance(error, (json.JSONDecodeError, UnicodeDecodeError)):
            return ErrorType.PARSE_ERROR

        if error_type_name in ['FileNotFoundError', 'IsADirectoryError']:
            return ErrorType.FILE_UNAVAILABLE

        if error_type_name == 'HTTPError' or any(term in error_str for term in ['status 4', 'status 5']):
            return ErrorType.HTTP_ERROR

        if any(term in error_str for term in ['timeout', 'timed out', 'connection']):
            return ErrorType.NETWORK_ERROR

        if any(term in error_str for term in ['not found', 'no such file', 'missing']):
            return ErrorType.FILE_UNAVAILABLE

        if any(term in error_str for term in ['parse', 'json', 'decode', 'expecting value']):
            return ErrorType.PARSE_ERROR

        return ErrorType.UNKNOWN

    def _determine_severity(self, error_type: ErrorType) -> ErrorSeverity:
        """Nothing in this subsystem is fatal."""
        if error_type in self.WARNING_TYPES:
            return ErrorSeverity.WARNING
        return ErrorSeverity.ERROR

    def _remember(self, context: ErrorContext):
        self.error_history.append(context)
        if len(self.error_history) > self.max_history:
            del self.error_history[:len(self.error_history) - self.max_history]

    def _log_error(self, context: ErrorContext):
        """Log error with appropriate level and details."""
        log_message = f"{context.operation} - {context.error_type.value}: {context.message}"

        if context.filename:
            log_message += f" (file: {context.filename})"

        if context.item_id:
            log_message += f" (item: {context.item_id})"

        if context.severity == ErrorSeverity.INFO:
            self.logger.info(log_message)
        elif context.severity == ErrorSeverity.WARNING:
            self.logger.warning(log_message)
        elif context.severity == ErrorSeverity.ERROR:
            self.error_logger.error(log_message)
            if context.traceback:
                self.error_logger.debug(f"Traceback:\n{context.traceback}")
        else:
            self.error_logger.critical(log_message)

        if context.suggestion:
            self.logger.debug(f"Suggestion: {context.suggestion}")

    def errors_of_type(self, error_type: ErrorType) -> List[ErrorContext]:
        return [e for e in self.error_history if e.error_type == error_type]

    def clear(self):
        """Forget all recorded errors."""
        self.error_history.clear()

    def get_error_summary(self) -> Dict[str, Any]:
        """Get summary of errors for reporting."""
        if not self.error_history:
            return {
                'total_errors': 0,
                'by_type': {},
                'by_severity': {},
                'failed_files': [],
                'recent_errors': []
            }

        by_type = {}
        for error in self.error_history:
            error_type = error.error_type.value
            by_type[error_type] = by_type.get(error_type, 0) + 1

        by_severity = {}
        for error in self.error_history:
            severity = error.severity.value
            by_severity[severity] = by_severity.get(severity, 0) + 1

        failed_files = sorted({e.filename for e in self.error_history if e.filename})

        recent_errors = []
        for error in self.error_history[-5:]:
            recent_errors.append({
                'type': error.error_type.value,
                'severity': error.severity.value,
                'message': error.message,
                'operation': error.operation,
                'filename': error.filename,
                'timestamp': datetime.fromtimestamp(error.timestamp).isoformat(),
                'suggestion': error.suggestion
            })

        return {
            'total_errors': len(self.error_history),
            'by_type': by_type,
            'by_severity': by_severity,
            'failed_files': failed_files,
            'recent_errors': recent_errors
        }

    def export_error_report(self, output_file: str):
        """Export detailed error report."""
        report = {
            'generated_at': datetime.now().isoformat(),
            'summary': self.get_error_summary(),
            'detailed_errors': []
        }

        for error in self.error_history:
            error_dict = asdict(error)
            # Exception objects are not serializable
            error_dict.pop('exception', None)
            error_dict['error_type'] = error.error_type.value
            error_dict['severity'] = error.severity.value
            error_dict['timestamp'] = datetime.fromtimestamp(error.timestamp).isoformat()

            report['detailed_errors'].append(error_dict)

        try:
            with open(output_file, 'w') as f:
                json.dump(report, f, indent=2, default=str)

            self.logger.info(f"Error report exported to {output_file}")

        except OSError as e:
            self.logger.error(f"Failed to export error report: {e}")


# Global error handler instance
_error_handler = None


def get_error_handler() -> ErrorHandler:
    """Get global error handler instance."""
    global _error_handler
    if _error_handler is None:
        _error_handler = ErrorHandler()
    return _error_handler


def setup_error_handler(**kwargs) -> ErrorHandler:
    """Setup error handler with custom configuration."""
    global _error_handler
    _error_handler = ErrorHandler(**kwargs)
    return _error_handler
