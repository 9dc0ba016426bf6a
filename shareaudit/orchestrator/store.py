"""Thread-safe accumulator for scan findings and counters."""

import threading
from datetime import datetime, timezone
from typing import Iterable, List, Set

from ..logging import get_logger
from ..models.findings import Finding, IdempotencyKey
from ..models.scans import ScanResult, ScanStats

logger = get_logger(__name__)


class ScanResultStore:
    """Owns ScanStats and the finding list for one scan.

    Every mutation goes through the lock, so traversal workers running as
    tasks or threads can share a single instance.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._stats = ScanStats()
        self._findings: List[Finding] = []
        self._keys: Set[IdempotencyKey] = set()

    def add_finding(self, finding: Finding) -> bool:
        """Append a finding; returns False if its key was already recorded."""
        with self._lock:
            if finding.idempotency_key in self._keys:
                duplicate = True
            else:
                duplicate = False
                self._keys.add(finding.idempotency_key)
                self._findings.append(finding)
                self._stats.findings_count += 1
        if duplicate:
            logger.debug("Duplicate finding ignored", key=finding.idempotency_key)
        return not duplicate

    def add_findings(self, findings: Iterable[Finding]) -> int:
        return sum(1 for finding in findings if self.add_finding(finding))

    def record_error(self, count: int = 1) -> None:
        with self._lock:
            self._stats.error_count += count

    def record_site(self) -> None:
        with self._lock:
            self._stats.sites_scanned += 1

    def record_drive(self) -> None:
        with self._lock:
            self._stats.drives_scanned += 1

    def record_items(self, count: int = 1) -> None:
        with self._lock:
            self._stats.items_scanned += count

    @property
    def stats(self) -> ScanStats:
        """A copy of the current counters."""
        with self._lock:
            return self._stats.copy()

    @property
    def findings(self) -> List[Finding]:
        with self._lock:
            return list(self._findings)

    def snapshot(self, *, partial: bool = False) -> ScanResult:
        """Freeze the current state into a ScanResult."""
        with self._lock:
            return ScanResult(
                stats=self._stats.copy(),
                findings=list(self._findings),
                finished_at=datetime.now(timezone.utc),
                partial=partial,
            )
