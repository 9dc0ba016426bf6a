"""Drains cursor-linked Graph list responses."""

from typing import Any, Dict, List, Optional, Protocol

from ...errors import RequestError
from ...logging import get_logger
from .client import GraphClient

logger = get_logger(__name__)

NEXT_LINK_KEYS = ("@odata.nextLink", "nextLink")


class ErrorSink(Protocol):
    def record_error(self) -> None: ...


def next_link(page: Dict[str, Any]) -> Optional[str]:
    for key in NEXT_LINK_KEYS:
        if page.get(key):
            return page[key]
    return None


class PageAggregator:
    """Collects every page of a list endpoint into one ordered list."""

    def __init__(self, client: GraphClient, errors: Optional[ErrorSink] = None):
        self.client = client
        self.errors = errors

    async def fetch_all(
        self,
        initial_uri: str,
        headers: Optional[Dict[str, str]] = None,
    ) -> List[Dict[str, Any]]:
        """Return the concatenated ``value`` arrays in server page order.

        A failing page ends pagination: one error is recorded on the sink and
        the records gathered so far are returned.
        """
        records: List[Dict[str, Any]] = []
        seen: set[str] = set()
        uri: Optional[str] = initial_uri
        pages = 0

        while uri:
            if uri in seen:
                logger.warning("Continuation link repeated, stopping", uri=uri, pages=pages)
                break
            seen.add(uri)

            try:
                page = await self.client.execute(uri, "GET", headers)
            except RequestError as e:
                if self.errors is not None:
                    self.errors.record_error()
                logger.error(
                    "Page fetch failed",
                    uri=uri,
                    status_code=e.status_code,
                    error=e.message,
                    pages=pages,
                    partial_records=len(records),
                )
                break

            if not isinstance(page, dict):
                if self.errors is not None:
                    self.errors.record_error()
                logger.error("Page was not a JSON object", uri=uri, pages=pages)
                break

            pages += 1
            records.extend(page.get("value") or [])
            uri = next_link(page)

        return records
