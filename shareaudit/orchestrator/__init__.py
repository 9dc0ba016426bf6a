"""Scan and remediation components for ShareAudit."""

from .classifier import classify
from .remediation import RemediationEngine
from .store import ScanResultStore
from .walker import TreeWalker

__all__ = ["RemediationEngine", "ScanResultStore", "TreeWalker", "classify"]
