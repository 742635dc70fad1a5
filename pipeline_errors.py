"""
Error Types for the Corpus Extract Pipeline
===========================================

Failures are split by blast radius:

- package-fatal errors (``PackageStructureError``, ``ArchiveToolError``) abort
  a single partial build; the orchestrator discards that package and moves on
- run-fatal errors (``ExclusionRuleError``) abort the whole partials run
- totals-fatal errors (``AggregationError``) abort the totals rebuild
"""

import time
import traceback
from typing import Any, Dict, Optional


class ExtractError(Exception):
    """Base class for pipeline errors"""

    def __init__(self, message: str, cause: Optional[Exception] = None,
                 error_code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        """
        Initialize a pipeline error.

        Args:
            message: Error description
            cause: Original exception that caused this error
            error_code: Specific error code for categorization
            details: Additional error context
        """
        super().__init__(message)
        self.cause = cause
        self.error_code = error_code
        self.details = details or {}
        self.timestamp = time.time()
        self.traceback = traceback.format_exc() if cause else None

    def __str__(self) -> str:
        base_msg = super().__str__()
        if self.error_code:
            base_msg = f"[{self.error_code}] {base_msg}"
        if self.cause:
            return f"{base_msg} (caused by {type(self.cause).__name__}: {self.cause})"
        return base_msg

    def __repr__(self) -> str:
        return (f"{type(self).__name__}(message={super().__str__()!r}, "
                f"cause={self.cause!r}, error_code={self.error_code!r}, "
                f"details={self.details!r})")

    def log_context(self) -> Dict[str, Any]:
        """Get error context for structured logging"""
        return {
            'error_type': type(self).__name__,
            'error_code': self.error_code,
            'message': str(self),
            'timestamp': self.timestamp,
            'details': self.details,
            'cause': str(self.cause) if self.cause else None
        }


class PackageError(ExtractError):
    """A failure confined to one package's partial build"""


class PackageStructureError(PackageError):
    """Archive does not have the single top-level wrapper directory"""

    def __init__(self, archive: str, offending: Optional[str] = None):
        super().__init__(
            "Package contains top-level files!",
            error_code='STRUCTURE',
            details={'archive': archive, 'entry': offending}
        )


class ArchiveToolError(PackageError):
    """The archive tool failed, could not be started, or overflowed its output ceiling"""

    def __init__(self, message: str, returncode: Optional[int] = None,
                 stderr: str = '', cause: Optional[Exception] = None):
        super().__init__(
            message,
            cause=cause,
            error_code='ARCHIVE_TOOL',
            details={'returncode': returncode, 'stderr': stderr[-2000:]}
        )
        self.returncode = returncode
        self.stderr = stderr


class ExclusionRuleError(ExtractError):
    """An exclusion rule could not be loaded or compiled; aborts the run"""

    def __init__(self, message: str, rule: Optional[str] = None,
                 line_number: Optional[int] = None, cause: Optional[Exception] = None):
        super().__init__(
            message,
            cause=cause,
            error_code='EXCLUSION_RULE',
            details={'rule': rule, 'line': line_number}
        )
        self.rule = rule
        self.line_number = line_number


class AggregationError(ExtractError):
    """Totals rebuild failed; no partial aggregation is kept"""

    def __init__(self, message: str, artifact: Optional[str] = None,
                 package_id: Optional[str] = None, cause: Optional[Exception] = None):
        super().__init__(
            message,
            cause=cause,
            error_code='AGGREGATION',
            details={'artifact': artifact, 'package': package_id}
        )
        self.artifact = artifact
        self.package_id = package_id
