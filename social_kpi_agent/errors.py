from __future__ import annotations


class FormatError(ValueError):
    """Filename or date range that cannot yield a reporting period."""


class MalformedDocumentError(ValueError):
    """Export file missing a required sentinel row or preamble."""


class PersistenceError(RuntimeError):
    """Snapshot store open/exec/transaction failure."""


class CollaboratorFailure(RuntimeError):
    """Narrative generation endpoint failed or timed out."""


class ExportDiscoveryError(RuntimeError):
    """Export directory lacks one of the three files, or a file is of unknown kind."""
