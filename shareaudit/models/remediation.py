"""Remediation data models for ShareAudit."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from dataclasses_json import DataClassJsonMixin

from .findings import Finding, IdempotencyKey
from .scans import ScanResult


class RemediationAction(str, Enum):
    """What to do with each permission in a plan."""

    PREVIEW = 'preview'
    DELETE = 'delete'
    CONVERT_TO_ORGANIZATION = 'convert_to_organization'
    SET_EXPIRATION = 'set_expiration'

    @property
    def is_destructive(self) -> bool:
        return self is not RemediationAction.PREVIEW


class OutcomeStatus(str, Enum):
    SUCCEEDED = 'succeeded'
    FAILED = 'failed'
    SKIPPED = 'skipped'
    WOULD_APPLY = 'would_apply'


@dataclass(frozen=True, slots=True)
class PlanItem(DataClassJsonMixin):
    """The subset of a finding needed to act on it."""

    site_id: str
    drive_id: str
    item_id: str
    permission_id: str
    link_type: Optional[str] = None
    link_scope: Optional[str] = None
    item_name: str = ''
    item_path: str = ''
    site_name: str = ''

    @property
    def idempotency_key(self) -> IdempotencyKey:
        return (self.site_id, self.drive_id, self.item_id, self.permission_id)

    @property
    def key(self) -> str:
        return '/'.join(self.idempotency_key)

    @classmethod
    def from_finding(cls, finding: Finding) -> PlanItem:
        return cls(
            site_id=finding.ref.site_id,
            drive_id=finding.ref.drive_id,
            item_id=finding.ref.item_id,
            permission_id=finding.permission_id,
            link_type=finding.link_type,
            link_scope=finding.link_scope,
            item_name=finding.item_name,
            item_path=finding.ref.item_path,
            site_name=finding.site_name,
        )

    def to_dict(self, encode_json: bool = False) -> Dict[str, Any]:
        return {
            'siteId': self.site_id,
            'siteName': self.site_name,
            'driveId': self.drive_id,
            'itemId': self.item_id,
            'permissionId': self.permission_id,
            'linkType': self.link_type,
            'linkScope': self.link_scope,
            'itemName': self.item_name,
            'itemPath': self.item_path,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], *, infer_missing: bool = False) -> PlanItem:
        if not isinstance(data, dict):
            raise ValueError(f"Plan item must be an object, got {type(data).__name__}")
        missing = [k for k in ('siteId', 'driveId', 'itemId', 'permissionId') if not data.get(k)]
        if missing:
            raise ValueError(f"Plan item is missing {', '.join(missing)}")
        return cls(
            site_id=data['siteId'],
            drive_id=data['driveId'],
            item_id=data['itemId'],
            permission_id=data['permissionId'],
            link_type=data.get('linkType'),
            link_scope=data.get('linkScope'),
            item_name=data.get('itemName', ''),
            item_path=data.get('itemPath', ''),
            site_name=data.get('siteName', ''),
        )


@dataclass(slots=True)
class RemediationPlan(DataClassJsonMixin):
    """Ordered findings selected for remediation. Read-only to the engine."""

    items: List[PlanItem] = field(default_factory=list)

    @property
    def total_items(self) -> int:
        return len(self.items)

    @classmethod
    def from_findings(cls, findings: Iterable[Finding]) -> RemediationPlan:
        return cls(items=[PlanItem.from_finding(f) for f in findings])

    @classmethod
    def from_scan_result(cls, result: ScanResult) -> RemediationPlan:
        return cls.from_findings(result.findings)

    def to_dict(self, encode_json: bool = False) -> Dict[str, Any]:
        return {
            'totalItems': self.total_items,
            'items': [item.to_dict() for item in self.items],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], *, infer_missing: bool = False) -> RemediationPlan:
        items = data.get('items') or []
        if not isinstance(items, list):
            raise ValueError(f"Plan 'items' must be a list, got {type(items).__name__}")
        return cls(items=[PlanItem.from_dict(item) for item in items])


@dataclass(frozen=True, slots=True)
class RemediationOutcome:
    """Result of processing one plan item."""

    item: PlanItem
    status: OutcomeStatus
    detail: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status in (OutcomeStatus.SUCCEEDED, OutcomeStatus.WOULD_APPLY)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'key': self.item.key,
            'itemPath': self.item.item_path,
            'status': self.status.value,
            'detail': self.detail,
        }


@dataclass(slots=True)
class PreviewSummary:
    """Grouped counts shown before anything is changed."""

    total: int
    by_site: Dict[str, int]
    by_scope: Dict[str, int]
    by_link_type: Dict[str, int]

    @classmethod
    def from_plan(cls, plan: RemediationPlan) -> PreviewSummary:
        return cls(
            total=plan.total_items,
            by_site=dict(Counter(i.site_name or i.site_id for i in plan.items)),
            by_scope=dict(Counter(i.link_scope or 'none' for i in plan.items)),
            by_link_type=dict(Counter(i.link_type or 'none' for i in plan.items)),
        )


@dataclass(slots=True)
class RemediationReport(DataClassJsonMixin):
    """Totals and outcomes of one remediation run."""

    action: RemediationAction
    total: int
    dry_run: bool = False
    parameters: Dict[str, Any] = field(default_factory=dict)
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    batches: int = 0
    cancelled: bool = False
    outcomes: List[RemediationOutcome] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None

    def record(self, outcome: RemediationOutcome) -> None:
        """Fold one outcome into the running totals."""
        self.outcomes.append(outcome)
        self.processed += 1
        if outcome.status is OutcomeStatus.SKIPPED:
            self.skipped += 1
        elif outcome.succeeded:
            self.succeeded += 1
        else:
            self.failed += 1

    def complete(self) -> None:
        self.completed_at = datetime.now(timezone.utc)

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.completed_at:
            return round((self.completed_at - self.started_at).total_seconds(), 2)
        return None

    def to_dict(self, encode_json: bool = False) -> Dict[str, Any]:
        """Convert to the persisted remediation-report shape."""
        return {
            'action': self.action.value,
            'completedAt': self.completed_at.isoformat() if self.completed_at else None,
            'durationSeconds': self.duration_seconds,
            'dryRun': self.dry_run,
            'cancelled': self.cancelled,
            'stats': {
                'total': self.total,
                'processed': self.processed,
                'succeeded': self.succeeded,
                'failed': self.failed,
                'skipped': self.skipped,
            },
            'parameters': self.parameters,
            'outcomes': [outcome.to_dict() for outcome in self.outcomes],
        }
