"""Data models for ShareAudit."""

from .findings import ClassificationResult, Finding
from .permissions import PermissionRecord, Principal, ResourceRef, SharingLink
from .remediation import (
    OutcomeStatus,
    PlanItem,
    PreviewSummary,
    RemediationAction,
    RemediationOutcome,
    RemediationPlan,
    RemediationReport,
)
from .scans import ScanResult, ScanStats

__all__ = [
    "ClassificationResult",
    "Finding",
    "OutcomeStatus",
    "PermissionRecord",
    "PlanItem",
    "PreviewSummary",
    "Principal",
    "RemediationAction",
    "RemediationOutcome",
    "RemediationPlan",
    "RemediationReport",
    "ResourceRef",
    "ScanResult",
    "ScanStats",
    "SharingLink",
]
