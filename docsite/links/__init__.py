"""Link resolution and diagnostics."""

from .report import LinkReport, LinkReportEntry
from .resolver import LinkResolver, RewriteResult

__all__ = ["LinkReport", "LinkReportEntry", "LinkResolver", "RewriteResult"]
