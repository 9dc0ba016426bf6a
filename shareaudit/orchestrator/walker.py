"""Concurrent traversal of sites, drives and drive items."""

import asyncio
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Pattern, Union

from ..adapters.graph.client import GraphClient
from ..adapters.graph.pagination import PageAggregator
from ..config import get_settings
from ..logging import get_logger, log_scan_event
from ..models.findings import Finding
from ..models.permissions import PermissionRecord, ResourceRef
from ..models.scans import ScanResult
from .classifier import classify
from .store import ScanResultStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class SiteTask:
    site_id: str
    site_name: str


@dataclass(frozen=True)
class DriveTask:
    site_id: str
    site_name: str
    drive_id: str
    drive_name: str


@dataclass(frozen=True)
class ItemTask:
    ref: ResourceRef
    site_name: str
    item_name: str
    is_folder: bool = False
    has_children: bool = False


Task = Union[SiteTask, DriveTask, ItemTask]


@dataclass
class TaskOutcome:
    """What one traversal unit produced; applied to the store by the collector."""

    children: List[Task] = field(default_factory=list)
    findings: List[Finding] = field(default_factory=list)
    sites: int = 0
    drives: int = 0
    items: int = 0


def _site_name(site: Dict[str, Any]) -> str:
    return site.get("displayName") or site.get("name") or site.get("id") or ""


def _child_path(parent_path: str, name: str) -> str:
    return f"{parent_path.rstrip('/')}/{name}"


class TreeWalker:
    """Walks tenant → site → drive → item and classifies every permission."""

    def __init__(
        self,
        client: GraphClient,
        *,
        max_concurrency: Optional[int] = None,
        site_filter: Optional[str] = None,
    ):
        """Initialize the walker. An invalid site filter raises ValueError."""
        settings = get_settings()
        self.client = client
        self.max_concurrency = settings.max_concurrency if max_concurrency is None else max_concurrency
        if self.max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")

        pattern = site_filter if site_filter is not None else settings.site_filter
        self._site_filter: Optional[Pattern[str]] = None
        if pattern:
            try:
                self._site_filter = re.compile(pattern, re.IGNORECASE)
            except re.error as e:
                raise ValueError(f"Invalid site filter {pattern!r}: {e}") from e

    async def scan(self, store: Optional[ScanResultStore] = None) -> ScanResult:
        """Run a full scan and return its result.

        Pass a store to keep access to partial results if the scan is
        cancelled or times out.
        """
        store = store if store is not None else ScanResultStore()
        pages = PageAggregator(self.client, errors=store)

        log_scan_event(logger, "started", max_concurrency=self.max_concurrency)

        queue: asyncio.Queue = asyncio.Queue()
        for site in await pages.fetch_all(self.client.url("sites?search=*")):
            if self._include_site(site):
                queue.put_nowait(SiteTask(site_id=site["id"], site_name=_site_name(site)))

        workers = [
            asyncio.create_task(self._worker(queue, pages, store), name=f"walker-{n}")
            for n in range(self.max_concurrency)
        ]
        try:
            await queue.join()
        finally:
            for worker in workers:
                worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

        result = store.snapshot()
        log_scan_event(
            logger,
            "completed",
            sites=result.stats.sites_scanned,
            drives=result.stats.drives_scanned,
            items=result.stats.items_scanned,
            findings=result.stats.findings_count,
            errors=result.stats.error_count,
            duration_seconds=result.duration_seconds,
        )
        return result

    def _include_site(self, site: Dict[str, Any]) -> bool:
        if not site.get("id"):
            return False
        if self._site_filter is None:
            return True
        candidates = (site.get("displayName"), site.get("name"), site.get("webUrl"))
        if any(c and self._site_filter.search(c) for c in candidates):
            return True
        logger.info("Site skipped by filter", site_id=site["id"], site_name=_site_name(site))
        return False

    async def _worker(
        self,
        queue: asyncio.Queue,
        pages: PageAggregator,
        store: ScanResultStore,
    ) -> None:
        while True:
            task = await queue.get()
            try:
                outcome = await self._process(task, pages)
                self._collect(outcome, queue, store)
            except Exception as e:
                store.record_error()
                logger.error(
                    "Traversal unit failed",
                    unit=type(task).__name__,
                    task=repr(task),
                    error=str(e),
                    error_type=type(e).__name__,
                )
            finally:
                queue.task_done()

    def _collect(self, outcome: TaskOutcome, queue: asyncio.Queue, store: ScanResultStore) -> None:
        if outcome.sites:
            store.record_site()
        if outcome.drives:
            store.record_drive()
        if outcome.items:
            store.record_items(outcome.items)
        store.add_findings(outcome.findings)
        for child in outcome.children:
            queue.put_nowait(child)

    async def _process(self, task: Task, pages: PageAggregator) -> TaskOutcome:
        if isinstance(task, SiteTask):
            return await self._process_site(task, pages)
        if isinstance(task, DriveTask):
            return await self._process_drive(task, pages)
        return await self._process_item(task, pages)

    async def _process_site(self, task: SiteTask, pages: PageAggregator) -> TaskOutcome:
        log_scan_event(logger, "site", site_id=task.site_id, site_name=task.site_name)
        drives = await pages.fetch_all(self.client.url(f"sites/{task.site_id}/drives"))
        children: List[Task] = [
            DriveTask(
                site_id=task.site_id,
                site_name=task.site_name,
                drive_id=drive["id"],
                drive_name=drive.get("name", ""),
            )
            for drive in drives
            if drive.get("id")
        ]
        return TaskOutcome(children=children, sites=1)

    async def _process_drive(self, task: DriveTask, pages: PageAggregator) -> TaskOutcome:
        log_scan_event(
            logger, "drive", site_id=task.site_id, drive_id=task.drive_id, drive_name=task.drive_name
        )
        items = await pages.fetch_all(self.client.url(f"drives/{task.drive_id}/root/children"))
        parent = ResourceRef(site_id=task.site_id, drive_id=task.drive_id, item_id="root", item_path="")
        return TaskOutcome(children=self._item_tasks(parent, task.site_name, items), drives=1)

    async def _process_item(self, task: ItemTask, pages: PageAggregator) -> TaskOutcome:
        ref = task.ref
        outcome = TaskOutcome(items=1)

        permissions = await pages.fetch_all(
            self.client.url(f"drives/{ref.drive_id}/items/{ref.item_id}/permissions")
        )
        scanned_at = datetime.now(timezone.utc)
        for raw in permissions:
            record = PermissionRecord.from_graph(raw)
            if not record.permission_id:
                logger.warning("Permission without id ignored", item=ref.key)
                continue
            verdict = classify(record)
            if not verdict.is_anonymous:
                continue
            link = record.link
            outcome.findings.append(
                Finding(
                    ref=ref,
                    permission_id=record.permission_id,
                    classification_reason=verdict.reason,
                    link_scope=link.scope if link else None,
                    link_type=link.type if link else None,
                    granted_to=record.granted_to.identifier if record.granted_to else None,
                    expires_on=link.expires_on if link else None,
                    has_password=link.has_password if link else False,
                    roles=tuple(sorted(record.roles)),
                    item_name=task.item_name,
                    site_name=task.site_name,
                    link_url=link.web_url if link else None,
                    scan_timestamp=scanned_at,
                )
            )

        if task.is_folder and task.has_children:
            children = await pages.fetch_all(
                self.client.url(f"drives/{ref.drive_id}/items/{ref.item_id}/children")
            )
            outcome.children = self._item_tasks(ref, task.site_name, children)

        return outcome

    @staticmethod
    def _item_tasks(parent: ResourceRef, site_name: str, items: List[Dict[str, Any]]) -> List[Task]:
        tasks: List[Task] = []
        for item in items:
            if not item.get("id"):
                continue
            name = item.get("name", "")
            folder = item.get("folder")
            tasks.append(
                ItemTask(
                    ref=ResourceRef(
                        site_id=parent.site_id,
                        drive_id=parent.drive_id,
                        item_id=item["id"],
                        item_path=_child_path(parent.item_path, name),
                    ),
                    site_name=site_name,
                    item_name=name,
                    is_folder=isinstance(folder, dict),
                    # a folder facet without childCount is listed anyway
                    has_children=isinstance(folder, dict) and folder.get("childCount") != 0,
                )
            )
        return tasks
