"""Unit tests for the scan result store."""

from concurrent.futures import ThreadPoolExecutor

from shareaudit.models.findings import Finding
from shareaudit.models.permissions import ResourceRef
from shareaudit.orchestrator.store import ScanResultStore


def make_finding(item_id: str, permission_id: str = "p1") -> Finding:
    return Finding(
        ref=ResourceRef(site_id="s1", drive_id="d1", item_id=item_id, item_path=f"/{item_id}"),
        permission_id=permission_id,
        classification_reason="anonymous sharing link",
        link_scope="anonymous",
    )


class TestScanResultStore:
    """Test cases for ScanResultStore."""

    def test_duplicate_key_recorded_once(self):
        store = ScanResultStore()

        assert store.add_finding(make_finding("i1")) is True
        assert store.add_finding(make_finding("i1")) is False
        assert store.add_finding(make_finding("i1", "p2")) is True

        assert store.stats.findings_count == 2
        assert len(store.findings) == 2

    def test_concurrent_writers(self):
        store = ScanResultStore()

        def work(n: int) -> None:
            store.add_finding(make_finding(f"i{n}"))
            store.record_items()
            store.record_error()

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(work, range(500)))

        stats = store.stats
        assert stats.findings_count == 500
        assert stats.items_scanned == 500
        assert stats.error_count == 500

    def test_snapshot_is_detached(self):
        store = ScanResultStore()
        store.record_site()
        store.add_finding(make_finding("i1"))

        snapshot = store.snapshot(partial=True)
        store.add_finding(make_finding("i2"))
        store.record_site()

        assert snapshot.partial is True
        assert snapshot.stats.sites_scanned == 1
        assert len(snapshot.findings) == 1

    def test_snapshot_serialises_scan_info(self):
        store = ScanResultStore()
        store.record_site()
        store.record_drive()
        store.record_items(3)
        store.add_finding(make_finding("i1"))

        data = store.snapshot().to_dict()

        assert data["scanInfo"]["sitesScanned"] == 1
        assert data["scanInfo"]["drivesScanned"] == 1
        assert data["scanInfo"]["itemsScanned"] == 3
        assert data["scanInfo"]["findingsCount"] == 1
        assert data["scanInfo"]["errors"] == 0
        assert data["results"][0]["itemId"] == "i1"
