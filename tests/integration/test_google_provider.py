"""
Integration tests for GoogleSheetsProvider with the API client mocked out.
"""
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import httplib2
import pytest
from google.auth import exceptions as auth_exceptions
from googleapiclient.errors import HttpError

from core.exceptions import SheetsAuthorizationError, SheetsProviderError
from core.sheets import GoogleSheetsProvider, _quote_sheet_name


def _http_error(status: int) -> HttpError:
    return HttpError(SimpleNamespace(status=status, reason="error"), b"{}")


@pytest.fixture
def google_provider(tmp_path):
    key_file = tmp_path / "sa.json"
    key_file.write_text("{}")
    return GoogleSheetsProvider(spreadsheet_id="sheet-123", service_account_file=str(key_file))


class TestQuoting:

    def test_plain(self):
        assert _quote_sheet_name("January") == "'January'"

    def test_embedded_quote(self):
        assert _quote_sheet_name("Artur's") == "'Artur''s'"


class TestAuthorize:

    @pytest.mark.asyncio
    async def test_missing_key_file(self, tmp_path):
        provider = GoogleSheetsProvider(
            spreadsheet_id="sheet-123",
            service_account_file=str(tmp_path / "missing.json"),
        )
        with pytest.raises(SheetsAuthorizationError):
            await provider.authorize()

    @pytest.mark.asyncio
    async def test_invalid_key_file(self, google_provider):
        with pytest.raises(SheetsAuthorizationError):
            await google_provider.authorize()

    @pytest.mark.asyncio
    async def test_builds_readonly_service(self, google_provider):
        credentials = MagicMock()
        with patch(
            "core.sheets.service_account.Credentials.from_service_account_file",
            return_value=credentials,
        ) as from_file, patch("core.sheets.build", return_value="service") as build:
            handle = await google_provider.authorize()

        assert handle == "service"
        assert from_file.call_args.kwargs["scopes"] == [
            "https://www.googleapis.com/auth/spreadsheets.readonly"
        ]
        credentials.refresh.assert_called_once()
        build.assert_called_once_with("sheets", "v4", credentials=credentials, cache_discovery=False)


class TestReads:

    @pytest.mark.asyncio
    async def test_list_sheet_titles(self, google_provider):
        handle = MagicMock()
        handle.spreadsheets.return_value.get.return_value.execute.return_value = {
            "sheets": [{"properties": {"title": "January"}}, {"properties": {"title": "February"}}]
        }
        assert await google_provider.list_sheet_titles(handle) == ["January", "February"]

    @pytest.mark.asyncio
    async def test_fetch_rows_range(self, google_provider):
        handle = MagicMock()
        values_get = handle.spreadsheets.return_value.values.return_value.get
        values_get.return_value.execute.return_value = {"values": [["Date", "Artur"]]}

        rows = await google_provider.fetch_rows(handle, "January")

        assert rows == [["Date", "Artur"]]
        values_get.assert_called_once_with(spreadsheetId="sheet-123", range="'January'!A1:W")

    @pytest.mark.asyncio
    async def test_fetch_rows_empty_sheet(self, google_provider):
        handle = MagicMock()
        handle.spreadsheets.return_value.values.return_value.get.return_value.execute.return_value = {}
        assert await google_provider.fetch_rows(handle, "Empty") == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403])
    async def test_auth_status_mapped(self, google_provider, status):
        handle = MagicMock()
        handle.spreadsheets.return_value.values.return_value.get.return_value.execute.side_effect = _http_error(status)

        with pytest.raises(SheetsAuthorizationError):
            await google_provider.fetch_rows(handle, "January")

    @pytest.mark.asyncio
    async def test_other_status_mapped(self, google_provider):
        handle = MagicMock()
        handle.spreadsheets.return_value.get.return_value.execute.side_effect = _http_error(500)

        with pytest.raises(SheetsProviderError) as exc_info:
            await google_provider.list_sheet_titles(handle)
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_network_error_mapped(self, google_provider):
        handle = MagicMock()
        handle.spreadsheets.return_value.get.return_value.execute.side_effect = ConnectionResetError("reset")

        with pytest.raises(SheetsProviderError):
            await google_provider.list_sheet_titles(handle)

    @pytest.mark.asyncio
    async def test_dns_failure_mapped(self, google_provider):
        handle = MagicMock()
        handle.spreadsheets.return_value.values.return_value.get.return_value.execute.side_effect = (
            httplib2.ServerNotFoundError("Unable to find the server at sheets.googleapis.com")
        )

        with pytest.raises(SheetsProviderError):
            await google_provider.fetch_rows(handle, "January")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        auth_exceptions.TransportError("connection aborted"),
        auth_exceptions.RefreshError("invalid_grant"),
    ])
    async def test_credential_failure_mapped(self, google_provider, error):
        handle = MagicMock()
        handle.spreadsheets.return_value.get.return_value.execute.side_effect = error

        with pytest.raises(SheetsAuthorizationError):
            await google_provider.list_sheet_titles(handle)
