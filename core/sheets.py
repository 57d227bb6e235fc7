"""
Spend data provider and its caches.

The spreadsheet is read through a `SheetsProvider`. `GoogleSheetsProvider`
talks to the Google Sheets API with a service account; tests substitute an
in-memory provider. Three caches sit on top of the provider:

- CredentialCache: the authorized handle, re-authorized once it is older
  than the TTL. Its authorization time is the freshness clock for sheet names.
- SheetMetadataCache: the sheet titles, refetched whenever the handle is
  re-authorized.
- SheetDataCache: raw rows per sheet (with their resolved layout), each entry
  expiring independently.

There is no locking: concurrent misses for the same key may both fetch.
Provider calls have no timeout.
"""
import asyncio
import os
from typing import Any, List, Optional, Protocol, Sequence

import httplib2
from google.auth import exceptions as auth_exceptions
from google.auth.transport.requests import Request as AuthRequest
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from core.cache import CacheEntry, Clock, TTLCache
from core.config import SheetsConfig, config
from core.exceptions import SheetsAuthorizationError, SheetsProviderError
from core.observability import Timer, get_logger
from core.sheet_layout import Row, SheetSnapshot

logger = get_logger(__name__)


class SheetsProvider(Protocol):
    """Read-only tabular data source addressed by sheet name."""

    async def authorize(self) -> Any:
        ...

    async def list_sheet_titles(self, handle: Any) -> List[str]:
        ...

    async def fetch_rows(self, handle: Any, sheet_name: str) -> List[Row]:
        ...


def _quote_sheet_name(sheet_name: str) -> str:
    """Quote a sheet title for use in an A1 range."""
    return "'" + sheet_name.replace("'", "''") + "'"


def _map_http_error(error: HttpError, action: str) -> Exception:
    status = getattr(error.resp, "status", None)
    try:
        status = int(status) if status is not None else None
    except (TypeError, ValueError):
        status = None

    if status in (401, 403):
        return SheetsAuthorizationError(f"Spreadsheet access denied while {action}", str(error))
    return SheetsProviderError(f"Sheets API error while {action}", str(error), status_code=status)


class GoogleSheetsProvider:
    """Google Sheets API v4 provider using service-account credentials."""

    def __init__(
        self,
        *,
        spreadsheet_id: str,
        service_account_file: str,
        scopes: Sequence[str] = SheetsConfig.scopes,
        value_range: str = SheetsConfig.value_range,
        num_retries: int = 0,
    ) -> None:
        self._spreadsheet_id = spreadsheet_id
        self._service_account_file = os.path.expanduser(service_account_file)
        self._scopes = list(scopes)
        self._value_range = value_range
        self._num_retries = num_retries

    @classmethod
    def from_config(cls, sheets_config: Optional[SheetsConfig] = None) -> "GoogleSheetsProvider":
        cfg = sheets_config or config.sheets
        return cls(
            spreadsheet_id=cfg.spreadsheet_id,
            service_account_file=cfg.service_account_file,
            scopes=cfg.scopes,
            value_range=cfg.value_range,
            num_retries=cfg.num_retries,
        )

    @property
    def spreadsheet_id(self) -> str:
        return self._spreadsheet_id

    def _build_service(self) -> Any:
        if not os.path.exists(self._service_account_file):
            raise SheetsAuthorizationError(
                "Service account file not found", self._service_account_file
            )

        try:
            credentials = service_account.Credentials.from_service_account_file(
                self._service_account_file,
                scopes=self._scopes,
            )
            credentials.refresh(AuthRequest())
        except (auth_exceptions.GoogleAuthError, ValueError) as e:
            raise SheetsAuthorizationError("Service account authorization failed", str(e)) from e

        return build("sheets", "v4", credentials=credentials, cache_discovery=False)

    async def authorize(self) -> Any:
        return await asyncio.to_thread(self._build_service)

    def _execute(self, request: Any, action: str) -> dict:
        """
        Run an API request, translating every client failure into SheetsError.

        401/403 and credential refresh failures are authorization errors;
        other HTTP statuses and transport failures are provider errors.
        """
        try:
            return request.execute(num_retries=self._num_retries)
        except HttpError as e:
            raise _map_http_error(e, action) from e
        except (auth_exceptions.RefreshError, auth_exceptions.TransportError) as e:
            raise SheetsAuthorizationError(f"Spreadsheet credentials failed while {action}", str(e)) from e
        except (httplib2.HttpLib2Error, OSError) as e:
            raise SheetsProviderError(f"Sheets API unreachable while {action}", str(e)) from e

    def _list_sheet_titles(self, handle: Any) -> List[str]:
        request = handle.spreadsheets().get(
            spreadsheetId=self._spreadsheet_id, fields="sheets(properties(title))"
        )
        meta = self._execute(request, "listing sheets")
        return [s["properties"]["title"] for s in meta.get("sheets", [])]

    async def list_sheet_titles(self, handle: Any) -> List[str]:
        return await asyncio.to_thread(self._list_sheet_titles, handle)

    def _fetch_rows(self, handle: Any, sheet_name: str) -> List[Row]:
        a1_range = f"{_quote_sheet_name(sheet_name)}!{self._value_range}"
        request = handle.spreadsheets().values().get(spreadsheetId=self._spreadsheet_id, range=a1_range)
        resp = self._execute(request, f"reading '{sheet_name}'")
        rows = resp.get("values", [])
        return rows if isinstance(rows, list) else []

    async def fetch_rows(self, handle: Any, sheet_name: str) -> List[Row]:
        return await asyncio.to_thread(self._fetch_rows, handle, sheet_name)


# ═══════════════════════════════════════════════════════════════════════════════
# CACHES
# ═══════════════════════════════════════════════════════════════════════════════

class CredentialCache:
    """Authorized provider handle, re-authorized once older than the TTL."""

    def __init__(self, provider: SheetsProvider, ttl_seconds: float, clock: Clock):
        self._provider = provider
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entry: Optional[CacheEntry[Any]] = None
        self.authorizations = 0

    @property
    def authorized_at(self) -> Optional[float]:
        """Shared freshness clock: when the current handle was obtained."""
        return self._entry.fetched_at if self._entry else None

    def is_stale(self) -> bool:
        return self._entry is None or not self._entry.is_fresh(self._clock(), self.ttl_seconds)

    async def get_authorized_handle(self) -> Any:
        if self.is_stale():
            logger.debug("Authorizing spend provider")
            handle = await self._provider.authorize()
            self._entry = CacheEntry(value=handle, fetched_at=self._clock())
            self.authorizations += 1
        return self._entry.value


class SheetMetadataCache:
    """Sheet titles, refreshed whenever the credential handle is re-authorized."""

    def __init__(self, provider: SheetsProvider, credentials: CredentialCache):
        self._provider = provider
        self._credentials = credentials
        self._names: Optional[List[str]] = None
        self._authorized_at: Optional[float] = None

    async def get_sheet_names(self) -> List[str]:
        handle = await self._credentials.get_authorized_handle()
        if self._names is None or self._authorized_at != self._credentials.authorized_at:
            names = await self._provider.list_sheet_titles(handle)
            self._names = list(names)
            self._authorized_at = self._credentials.authorized_at
            logger.debug(f"Sheet list refreshed: {len(self._names)} sheets")
        return list(self._names)


class SheetDataCache:
    """Raw rows per sheet name, each entry with its own expiry."""

    def __init__(
        self,
        provider: SheetsProvider,
        credentials: CredentialCache,
        ttl_seconds: float,
        clock: Clock,
    ):
        self._provider = provider
        self._credentials = credentials
        self._cache: TTLCache[SheetSnapshot] = TTLCache(ttl_seconds, clock=clock)

    async def get_sheet(self, sheet_name: str) -> SheetSnapshot:
        snapshot = self._cache.get(sheet_name)
        if snapshot is not None:
            return snapshot

        handle = await self._credentials.get_authorized_handle()
        with Timer(f"fetch_sheet[{sheet_name}]", logger):
            rows = await self._provider.fetch_rows(handle, sheet_name)

        snapshot = SheetSnapshot.build(sheet_name, rows or [])
        self._cache.set(sheet_name, snapshot)
        return snapshot

    async def get_sheet_rows(self, sheet_name: str) -> List[Row]:
        return (await self.get_sheet(sheet_name)).rows

    def invalidate(self, sheet_name: Optional[str] = None) -> int:
        return self._cache.invalidate(sheet_name)

    def get_stats(self) -> dict:
        return self._cache.get_stats()
