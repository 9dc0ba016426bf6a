"""
ShareAudit: anonymous sharing link auditor for SharePoint and OneDrive

ShareAudit walks every site, drive and item in a tenant through Microsoft
Graph and:
- Flags permissions reachable without sign-in (anonymous / anyone links)
- Flags guest principals granted access without a scoped link
- Writes findings and a remediation plan
- Deletes, downgrades or expires the offending links in bulk

Usage:
    from shareaudit import TreeWalker, RemediationEngine

    # Or use CLI:
    $ shareaudit scan --plan remediation_plan.json
"""

__version__ = "0.3.0"

# Core functionality
from .config import get_settings
from .logging import get_logger

from .orchestrator import RemediationEngine, ScanResultStore, TreeWalker, classify

__all__ = [
    "RemediationEngine",
    "ScanResultStore",
    "TreeWalker",
    "classify",
    "get_settings",
    "get_logger",
    "__version__",
]
