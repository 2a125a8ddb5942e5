"""
Google Sheets sink for the Client sheet.

Writes go through the Sheets v4 values API with a service account. The sheet and
its header row are provisioned lazily before the first write and re-checked at most
every few minutes. HTTP 429 responses are retried with an escalating delay; any
other failure, or a 429 that outlasts the retries, raises SheetWriteError.
"""

from __future__ import annotations

import re
import time
from typing import Any, Callable, Optional

import structlog
from google.oauth2.service_account import Credentials as ServiceAccountCredentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from sync_leads.cache import TTLCache
from sync_leads.config import (
    CLIENT_SHEET_NAME,
    SHEET_CACHE_TTL_SECONDS,
    SHEET_MAX_RETRIES,
)
from sync_leads.errors import ConfigurationError, SheetWriteError
from sync_leads.metrics import sheet_api_latency, sheet_retries
from sync_leads.services.credentials import CredentialsProvider

logger = structlog.get_logger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
TOKEN_URI = "https://oauth2.googleapis.com/token"
RETRY_DELAY = 1.0  # seconds, doubled on each retry

CLIENT_HEADERS: list[str] = [
    "Date",
    "Customer Sequence - Last",
    "Middle",
    "Classification",
    "Name",
    "Mobile 1",
    "Budget",
    "Preferred Size",
    "Preferred Area",
    "Status",
    "Individual Name",
    "Remarks",
    "Follow Up Status",
] + [f"Day {n} Response" for n in range(1, 11)]

_RANGE_START_ROW = re.compile(r"![A-Z]+(\d+)")


def column_letter(index: int) -> str:
    """
    Convert a 1-based column index to its A1 letter.

    Example:
        >>> column_letter(23)
        'W'
        >>> column_letter(28)
        'AB'
    """
    letters = ""
    while index > 0:
        index, remainder = divmod(index - 1, 26)
        letters = chr(65 + remainder) + letters
    return letters


def parse_start_row(updated_range: str) -> int:
    """Return the first row number of an A1 range such as "Client!A5:W7"."""
    match = _RANGE_START_ROW.search(updated_range or "")
    if not match:
        raise SheetWriteError(f"Cannot read row index from range {updated_range!r}")
    return int(match.group(1))


def _google_identity(creds: Any) -> tuple[Optional[str], ...]:
    """The credential values an API client is built from, plus the target sheet."""
    return (
        creds.google_service_account_json_path,
        creds.google_client_email,
        creds.google_private_key,
        creds.google_sheet_id,
    )

class GoogleSheetsSink:
    """Append/update rows of one logical sheet, provisioning it on first use."""

    def __init__(
        self,
        credentials: CredentialsProvider,
        sheet_name: str = CLIENT_SHEET_NAME,
        headers: Optional[list[str]] = None,
        cache_ttl_seconds: float = SHEET_CACHE_TTL_SECONDS,
        max_attempts: int = SHEET_MAX_RETRIES,
        retry_delay: float = RETRY_DELAY,
        service_factory: Optional[Callable[[Any], Any]] = None,
    ):
        self.credentials = credentials
        self.sheet_name = sheet_name
        self.headers = headers or CLIENT_HEADERS
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self._service_factory = service_factory or self._build_service
        self._service: Any = None
        self._service_identity: Optional[tuple[Optional[str], ...]] = None
        self._sheet_cache: TTLCache[bool] = TTLCache(ttl_seconds=cache_ttl_seconds)

    @property
    def end_column(self) -> str:
        return column_letter(len(self.headers))

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    @staticmethod
    def _build_service(creds: Any) -> Any:
        if creds.google_service_account_json_path:
            account = ServiceAccountCredentials.from_service_account_file(
                creds.google_service_account_json_path, scopes=SCOPES
            )
        elif creds.google_client_email and creds.google_private_key:
            account = ServiceAccountCredentials.from_service_account_info(
                {
                    "client_email": creds.google_client_email,
                    "private_key": creds.google_private_key,
                    "token_uri": TOKEN_URI,
                },
                scopes=SCOPES,
            )
        else:
            raise ConfigurationError("Google credentials not configured")
        return build("sheets", "v4", credentials=account, cache_discovery=False)

    def _spreadsheet(self) -> tuple[Any, str]:
        creds = self.credentials.get()
        sheet_id = creds.require_sheet_id()
        identity = _google_identity(creds)
        if self._service is None or identity != self._service_identity:
            if self._service is not None:
                logger.info("sheet_credentials_changed", sheet_name=self.sheet_name)
            self._service = self._service_factory(creds)
            self._service_identity = identity
        return self._service, sheet_id

    def reset(self) -> None:
        """Forget the API client and sheet checks (after credentials or sheet id change)."""
        self._service = None
        self._service_identity = None
        self._sheet_cache.clear()
        self.credentials.invalidate()

    # ------------------------------------------------------------------
    # Retry wrapper
    # ------------------------------------------------------------------

    def _execute(self, make_request: Callable[[], Any], operation: str) -> Any:
        attempt = 1
        while True:
            try:
                with sheet_api_latency.labels(operation=operation).time():
                    return make_request().execute()
            except HttpError as exc:
                status = exc.resp.status
                if status == 429 and attempt < self.max_attempts:
                    wait = self.retry_delay * (2 ** (attempt - 1))
                    logger.warning(
                        "sheet_rate_limited",
                        operation=operation,
                        attempt=attempt,
                        max_attempts=self.max_attempts,
                        sleep_seconds=wait,
                    )
                    sheet_retries.labels(operation=operation).inc()
                    time.sleep(wait)
                    attempt += 1
                    continue
                raise SheetWriteError(
                    f"Sheets {operation} failed with HTTP {status}: {exc}", status_code=status
                ) from exc

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def ensure_headers(self, force: bool = False) -> None:
        """
        Make sure the sheet exists and its first row matches the expected headers.

        Skipped while a previous check of the same spreadsheet is cached, unless force
        is set.
        """
        service, sheet_id = self._spreadsheet()
        cache_key = (sheet_id, self.sheet_name)
        if not force and self._sheet_cache.get(cache_key):
            return

        spreadsheet = self._execute(
            lambda: service.spreadsheets().get(
                spreadsheetId=sheet_id, fields="sheets.properties.title"
            ),
            "get_spreadsheet",
        )
        titles = [s.get("properties", {}).get("title") for s in spreadsheet.get("sheets", [])]
        if self.sheet_name not in titles:
            self._execute(
                lambda: service.spreadsheets().batchUpdate(
                    spreadsheetId=sheet_id,
                    body={"requests": [{"addSheet": {"properties": {"title": self.sheet_name}}}]},
                ),
                "add_sheet",
            )
            logger.info("sheet_created", sheet_name=self.sheet_name)

        header_range = f"{self.sheet_name}!A1:{self.end_column}1"
        current = self._execute(
            lambda: service.spreadsheets().values().get(spreadsheetId=sheet_id, range=header_range),
            "get_headers",
        )
        existing = (current.get("values") or [[]])[0]
        if existing != self.headers:
            self._execute(
                lambda: service.spreadsheets().values().update(
                    spreadsheetId=sheet_id,
                    range=header_range,
                    valueInputOption="USER_ENTERED",
                    body={"values": [self.headers]},
                ),
                "update_headers",
            )
            logger.info("sheet_headers_updated", sheet_name=self.sheet_name)

        self._sheet_cache.set(cache_key, True)

    def append_rows(self, rows: list[list[str]]) -> list[int]:
        """
        Append rows in one call.

        Returns:
            list[int]: 1-based sheet row index of each appended row, in order
        """
        if not rows:
            return []
        service, sheet_id = self._spreadsheet()
        result = self._execute(
            lambda: service.spreadsheets().values().append(
                spreadsheetId=sheet_id,
                range=f"{self.sheet_name}!A:{self.end_column}",
                valueInputOption="USER_ENTERED",
                insertDataOption="INSERT_ROWS",
                body={"values": rows},
            ),
            "append",
        )
        start = parse_start_row(result.get("updates", {}).get("updatedRange", ""))
        return list(range(start, start + len(rows)))

    def update_rows(self, rows: list[tuple[int, list[str]]]) -> None:
        """Overwrite existing rows in place, one call for the whole list."""
        if not rows:
            return
        service, sheet_id = self._spreadsheet()
        data = [
            {
                "range": f"{self.sheet_name}!A{row_index}:{self.end_column}{row_index}",
                "values": [values],
            }
            for row_index, values in rows
        ]
        self._execute(
            lambda: service.spreadsheets().values().batchUpdate(
                spreadsheetId=sheet_id,
                body={"valueInputOption": "USER_ENTERED", "data": data},
            ),
            "update",
        )
