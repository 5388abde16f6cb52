"""
Paginated listing of IBM Cloud billing report snapshots.
"""

import logging
from datetime import datetime
from typing import Any

import pytz
from ibm_cloud_sdk_core import ApiException
from keboola.component.exceptions import UserException
from pydantic import BaseModel, ConfigDict
from requests.exceptions import RequestException

from ibm_session import SessionProvider
from snapshot_flattener import flatten_snapshot


class SnapshotQuery(BaseModel):
    """Parameters of one snapshot listing."""

    model_config = ConfigDict(frozen=True)

    account_id: str
    month: str
    date_from: int | None = None
    date_to: int | None = None


class SnapshotListResult(BaseModel):
    """Flattened snapshots of one listing."""

    id: str
    snapshots: list[dict[str, Any]]
    # Declared by the output schema, not filled by the listing.
    snapshotcount: int | None = None


class SnapshotRequestError(Exception):
    """Raised when a snapshot page cannot be fetched."""


class SnapshotsNotFoundError(UserException):
    """Raised when the listing completes without any snapshot."""


class SnapshotLister:
    """Reads every page of the account snapshot listing."""

    def __init__(self, session: SessionProvider, max_pages: int | None = None):
        self.session = session
        self.max_pages = max_pages

    def build_query(self, month: str, date_from: int | None = None,
                    date_to: int | None = None) -> SnapshotQuery:
        """Build a query for the session's account."""
        return SnapshotQuery(
            account_id=self.session.account_id(),
            month=month,
            date_from=date_from,
            date_to=date_to,
        )

    def list_snapshots(self, query: SnapshotQuery) -> SnapshotListResult:
        """
        Fetch all snapshots matching the query and flatten them.

        Pages are requested one after another until the response carries no
        ``next.offset`` or an empty one. A failing page aborts the listing and
        nothing read before it is returned.

        Raises:
            SnapshotRequestError: a page request failed
            SnapshotsNotFoundError: no snapshot was returned at all
            SnapshotConversionError: a record could not be flattened
        """
        client = self.session.usage_reports_client()
        snapshots = self._fetch_all(client, query)

        if not snapshots:
            raise SnapshotsNotFoundError(f"no snapshots found for account: {query.account_id}")

        rows = [flatten_snapshot(snapshot) for snapshot in snapshots]
        return SnapshotListResult(id=self._result_id(), snapshots=rows)

    def _fetch_all(self, client, query: SnapshotQuery) -> list[dict]:
        snapshots = []
        next_ref = ""
        page = 0

        while True:
            page += 1
            if self.max_pages is not None and page > self.max_pages:
                raise SnapshotRequestError(
                    f"Snapshot listing exceeded {self.max_pages} pages for account {query.account_id}"
                )

            params = self._request_params(query, next_ref)
            try:
                response = client.get_reports_snapshot(**params)
            except (ApiException, RequestException) as error:
                logging.debug(
                    f"get_reports_snapshot failed {error}\n{getattr(error, 'http_response', None)}"
                )
                raise SnapshotRequestError(
                    f"get_reports_snapshot failed on page {page}: {error}"
                ) from error

            result = response.get_result() or {}
            page_snapshots = result.get("snapshots") or []
            snapshots.extend(page_snapshots)
            logging.debug(f"Page {page}: {len(page_snapshots)} snapshots")

            next_page = result.get("next")
            if not next_page or next_page.get("offset") is None:
                break
            next_ref = next_page["offset"]
            if next_ref == "":
                break

        logging.info(f"Fetched {len(snapshots)} snapshots in {page} page(s) for month {query.month}")
        return snapshots

    @staticmethod
    def _request_params(query: SnapshotQuery, next_ref: str) -> dict[str, Any]:
        params = {"account_id": query.account_id, "month": query.month}
        if query.date_from is not None:
            params["date_from"] = query.date_from
        if query.date_to is not None:
            params["date_to"] = query.date_to
        if next_ref:
            params["start"] = next_ref
        return params

    @staticmethod
    def _result_id() -> str:
        return str(datetime.now(pytz.utc))
