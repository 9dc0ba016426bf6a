"""Scan statistics and result models for ShareAudit."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from dataclasses_json import DataClassJsonMixin

from .findings import Finding


@dataclass(slots=True)
class ScanStats(DataClassJsonMixin):
    """Run counters. Mutated only by ScanResultStore under its lock."""

    sites_scanned: int = 0
    drives_scanned: int = 0
    items_scanned: int = 0
    findings_count: int = 0
    error_count: int = 0
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def copy(self) -> ScanStats:
        return ScanStats(
            sites_scanned=self.sites_scanned,
            drives_scanned=self.drives_scanned,
            items_scanned=self.items_scanned,
            findings_count=self.findings_count,
            error_count=self.error_count,
            start_time=self.start_time,
        )


@dataclass(slots=True)
class ScanResult(DataClassJsonMixin):
    """A finished (or interrupted) scan: counters plus findings."""

    stats: ScanStats
    findings: List[Finding]
    finished_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    partial: bool = False

    @property
    def duration_seconds(self) -> float:
        return round((self.finished_at - self.stats.start_time).total_seconds(), 2)

    def to_dict(self, encode_json: bool = False) -> Dict[str, Any]:
        """Convert to the persisted scan-output shape."""
        scan_info: Dict[str, Any] = {
            'scanDate': self.stats.start_time.isoformat(),
            'durationSeconds': self.duration_seconds,
            'sitesScanned': self.stats.sites_scanned,
            'drivesScanned': self.stats.drives_scanned,
            'itemsScanned': self.stats.items_scanned,
            'findingsCount': self.stats.findings_count,
            'errors': self.stats.error_count,
        }
        if self.partial:
            scan_info['partial'] = True
        return {
            'scanInfo': scan_info,
            'results': [finding.to_dict() for finding in self.findings],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], *, infer_missing: bool = False) -> ScanResult:
        """Create a scan result from its persisted shape."""
        info = data.get('scanInfo') or {}
        if not isinstance(info, dict):
            raise ValueError(f"'scanInfo' must be an object, got {type(info).__name__}")
        results = data.get('results') or []
        if not isinstance(results, list):
            raise ValueError(f"'results' must be a list, got {type(results).__name__}")
        start: Optional[datetime] = None
        if isinstance(info.get('scanDate'), str):
            start = datetime.fromisoformat(info['scanDate'])
        stats = ScanStats(
            sites_scanned=int(info.get('sitesScanned', 0)),
            drives_scanned=int(info.get('drivesScanned', 0)),
            items_scanned=int(info.get('itemsScanned', 0)),
            findings_count=int(info.get('findingsCount', 0)),
            error_count=int(info.get('errors', 0)),
        )
        if start is not None:
            stats.start_time = start
        findings = [Finding.from_dict(item) for item in results]
        return cls(stats=stats, findings=findings, partial=bool(info.get('partial', False)))
