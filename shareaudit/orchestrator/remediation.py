"""Bulk remediation of sharing-link findings."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Optional, Union

from ..adapters.graph.client import GraphClient
from ..config import get_settings
from ..errors import PlanError, RequestError, ShareAuditError
from ..logging import get_logger, log_remediation_event
from ..models.remediation import (
    OutcomeStatus,
    PlanItem,
    PreviewSummary,
    RemediationAction,
    RemediationOutcome,
    RemediationPlan,
    RemediationReport,
)

logger = get_logger(__name__)

ConfirmCallback = Callable[[RemediationPlan, RemediationAction], bool]

PROGRESS_EVERY = 10
MAX_EXPIRATION_DAYS = 365


def format_expiration(moment: datetime) -> str:
    """ISO-8601 UTC with a Z suffix, second precision."""
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def chunked(items: List[PlanItem], size: int) -> Iterator[List[PlanItem]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class RemediationEngine:
    """Applies one action to every item of a remediation plan.

    Items are processed sequentially in fixed-size batches with a pause
    between batches. Destructive runs need a confirmation unless they are
    dry runs, which perform reads but never mutate.
    """

    def __init__(
        self,
        client: Optional[GraphClient] = None,
        *,
        batch_size: Optional[int] = None,
        batch_pause_seconds: Optional[float] = None,
        treat_missing_as_success: bool = True,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        """Initialize the engine. A client is only needed for non-preview actions."""
        settings = get_settings()
        self.client = client
        self.batch_size = settings.batch_size if batch_size is None else batch_size
        if not 1 <= self.batch_size <= 50:
            raise ValueError("batch_size must be between 1 and 50")
        self.batch_pause_seconds = (
            settings.batch_pause_seconds if batch_pause_seconds is None else batch_pause_seconds
        )
        self.treat_missing_as_success = treat_missing_as_success
        self._sleep = sleep
        self._clock = clock

    def preview(self, plan: RemediationPlan) -> PreviewSummary:
        """Summarise a plan by site, scope and link type. Never touches the network."""
        _require_items(plan)
        summary = PreviewSummary.from_plan(plan)
        logger.info(
            "remediation.preview",
            total=summary.total,
            sites=len(summary.by_site),
            by_scope=summary.by_scope,
        )
        return summary

    async def run(
        self,
        plan: RemediationPlan,
        action: Union[RemediationAction, str],
        *,
        days: Optional[int] = None,
        dry_run: Optional[bool] = None,
        confirm: Optional[ConfirmCallback] = None,
    ) -> RemediationReport:
        """Process every plan item and return the run report."""
        settings = get_settings()
        action = RemediationAction(action)
        dry_run = settings.dry_run if dry_run is None else dry_run
        _require_items(plan)

        parameters: Dict[str, Any] = {"batchSize": self.batch_size}

        if not action.is_destructive:
            summary = self.preview(plan)
            parameters.update(
                bySite=summary.by_site, byScope=summary.by_scope, byLinkType=summary.by_link_type
            )
            report = RemediationReport(action=action, total=plan.total_items, dry_run=True, parameters=parameters)
            report.complete()
            return report

        expiration: Optional[str] = None
        if action is RemediationAction.SET_EXPIRATION:
            days = settings.expiration_days if days is None else days
            if not 1 <= days <= MAX_EXPIRATION_DAYS:
                raise ValueError(f"Expiration days must be between 1 and {MAX_EXPIRATION_DAYS}, got {days}")
            expiration = format_expiration(self._clock() + timedelta(days=days))
            parameters.update(days=days, expirationDateTime=expiration)

        if self.client is None:
            raise ValueError(f"A Graph client is required for action {action.value}")

        report = RemediationReport(action=action, total=plan.total_items, dry_run=dry_run, parameters=parameters)

        if not dry_run and (confirm is None or not confirm(plan, action)):
            report.cancelled = True
            report.complete()
            log_remediation_event(logger, action.value, "cancelled", total=plan.total_items)
            return report

        # A credential failure is fatal for the whole run, not per item
        await self.client.authenticate()

        log_remediation_event(
            logger, action.value, "started", dry_run=dry_run, total=plan.total_items, batch_size=self.batch_size
        )

        seen = set()
        for index, batch in enumerate(chunked(plan.items, self.batch_size)):
            if index:
                await self._sleep(self.batch_pause_seconds)
            report.batches += 1

            for item in batch:
                if item.idempotency_key in seen:
                    outcome = RemediationOutcome(item, OutcomeStatus.SKIPPED, "duplicate plan entry")
                else:
                    seen.add(item.idempotency_key)
                    outcome = await self._apply(item, action, dry_run, expiration)

                report.record(outcome)
                log_remediation_event(
                    logger,
                    action.value,
                    outcome.status.value,
                    resource=item.key,
                    dry_run=dry_run,
                    detail=outcome.detail,
                )
                if report.processed % PROGRESS_EVERY == 0:
                    logger.info(
                        "remediation.progress",
                        processed=report.processed,
                        total=report.total,
                        succeeded=report.succeeded,
                        failed=report.failed,
                        skipped=report.skipped,
                    )

        report.complete()
        log_remediation_event(
            logger,
            action.value,
            "completed",
            dry_run=dry_run,
            processed=report.processed,
            succeeded=report.succeeded,
            failed=report.failed,
            skipped=report.skipped,
            batches=report.batches,
            duration_seconds=report.duration_seconds,
        )
        return report

    async def _apply(
        self,
        item: PlanItem,
        action: RemediationAction,
        dry_run: bool,
        expiration: Optional[str],
    ) -> RemediationOutcome:
        try:
            if action is RemediationAction.DELETE:
                return await self._delete(item, dry_run)
            if action is RemediationAction.CONVERT_TO_ORGANIZATION:
                return await self._convert_to_organization(item, dry_run)
            return await self._set_expiration(item, dry_run, expiration)
        except RequestError as e:
            return RemediationOutcome(item, OutcomeStatus.FAILED, str(e))
        except ShareAuditError:
            raise
        except Exception as e:
            logger.error(
                "Remediation item failed unexpectedly",
                resource=item.key,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            return RemediationOutcome(item, OutcomeStatus.FAILED, f"{type(e).__name__}: {e}")

    @staticmethod
    def _permission_uri(item: PlanItem) -> str:
        return f"drives/{item.drive_id}/items/{item.item_id}/permissions/{item.permission_id}"

    async def _delete(self, item: PlanItem, dry_run: bool) -> RemediationOutcome:
        if dry_run:
            return RemediationOutcome(item, OutcomeStatus.WOULD_APPLY, "would delete permission")
        try:
            await self.client.execute(self._permission_uri(item), "DELETE")
        except RequestError as e:
            if e.is_not_found and self.treat_missing_as_success:
                return RemediationOutcome(item, OutcomeStatus.SUCCEEDED, "already removed")
            raise
        return RemediationOutcome(item, OutcomeStatus.SUCCEEDED, "permission deleted")

    async def _fetch_permission(self, item: PlanItem) -> Optional[Dict[str, Any]]:
        """Current permission resource, or None if it no longer exists."""
        try:
            return await self.client.execute(self._permission_uri(item), "GET")
        except RequestError as e:
            if e.is_not_found and self.treat_missing_as_success:
                return None
            raise

    async def _convert_to_organization(self, item: PlanItem, dry_run: bool) -> RemediationOutcome:
        permission = await self._fetch_permission(item)
        if permission is None:
            return RemediationOutcome(item, OutcomeStatus.SKIPPED, "permission no longer exists")
        link = permission.get("link")
        if not link:
            return RemediationOutcome(item, OutcomeStatus.SKIPPED, "not a sharing link")
        if (link.get("scope") or "").lower() == "organization":
            return RemediationOutcome(item, OutcomeStatus.SKIPPED, "already organization-scoped")

        body = {"link": {"scope": "organization", "type": link.get("type") or item.link_type}}
        if dry_run:
            return RemediationOutcome(item, OutcomeStatus.WOULD_APPLY, "would convert link to organization scope")
        await self.client.execute(self._permission_uri(item), "PATCH", body=body)
        return RemediationOutcome(item, OutcomeStatus.SUCCEEDED, "converted to organization scope")

    async def _set_expiration(
        self,
        item: PlanItem,
        dry_run: bool,
        expiration: Optional[str],
    ) -> RemediationOutcome:
        permission = await self._fetch_permission(item)
        if permission is None:
            return RemediationOutcome(item, OutcomeStatus.SKIPPED, "permission no longer exists")
        if not permission.get("link"):
            return RemediationOutcome(item, OutcomeStatus.SKIPPED, "not a sharing link")

        if dry_run:
            return RemediationOutcome(item, OutcomeStatus.WOULD_APPLY, f"would expire at {expiration}")
        # expirationDateTime is a property of the permission resource, not of its link facet
        await self.client.execute(
            self._permission_uri(item), "PATCH", body={"expirationDateTime": expiration}
        )
        return RemediationOutcome(item, OutcomeStatus.SUCCEEDED, f"expires at {expiration}")


def _require_items(plan: RemediationPlan) -> None:
    if not plan.items:
        raise PlanError("Remediation plan contains no items")
