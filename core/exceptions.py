"""
Custom exception hierarchy for spend lookups and the revenue ledger.

Exception Hierarchy:
    SheetsError (base)
    ├── SheetsAuthorizationError  - Credential invalid/expired (fatal, no retry)
    ├── SheetsProviderError       - Provider returned an error response
    └── SpendLookupError          - Point lookup found nothing
        ├── BuyerSheetNotFoundError  - Buyer column absent from every sheet
        └── DateRowNotFoundError     - Buyer found, no row for the date

    LedgerError                   - Persistence failure
    ValidationError               - Input validation failed
    QueryTimeoutError             - Store query exceeded timeout
"""


class SheetsError(Exception):
    """Base exception for all spend-provider errors."""

    def __init__(self, message: str, details: str = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class SheetsAuthorizationError(SheetsError):
    """
    Provider rejected the service-account credentials.

    Fatal for the current request, never retried.
    """


class SheetsProviderError(SheetsError):
    """Provider call failed for a reason other than authorization."""

    def __init__(self, message: str, details: str = None, status_code: int = None):
        super().__init__(message, details)
        self.status_code = status_code


class SpendLookupError(SheetsError):
    """Base for terminal misses of a single-date spend lookup."""

    def __init__(self, message: str, buyer_name: str, details: str = None):
        super().__init__(message, details)
        self.buyer_name = buyer_name


class BuyerSheetNotFoundError(SpendLookupError):
    """No cached sheet has a header column for the buyer."""

    def __init__(self, buyer_name: str):
        super().__init__("Buyer not found on any sheet", buyer_name, details=buyer_name)


class DateRowNotFoundError(SpendLookupError):
    """The buyer's sheet has no row for the requested date."""

    def __init__(self, buyer_name: str, sheet_name: str, date: str):
        super().__init__(
            "No spend row for date",
            buyer_name,
            details=f"{buyer_name} on '{sheet_name}' at {date}",
        )
        self.sheet_name = sheet_name
        self.date = date


class LedgerError(Exception):
    """Revenue ledger persistence failed."""

    def __init__(self, message: str, details: str = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class ValidationError(Exception):
    """
    Input validation failed.

    Used for validating query parameters and postback payloads.
    """

    def __init__(self, field: str, message: str, value: any = None):
        self.field = field
        self.message = message
        self.value = value
        super().__init__(f"{field}: {message}")

    def __str__(self) -> str:
        if self.value is not None:
            return f"{self.field}: {self.message} (got: {self.value!r})"
        return f"{self.field}: {self.message}"


class QueryTimeoutError(LedgerError):
    """Ledger query exceeded its timeout."""

    def __init__(self, query: str, timeout: float, details: str = None):
        self.query = query[:200] + "..." if len(query) > 200 else query
        self.timeout = timeout
        super().__init__(f"Query timed out after {timeout}s", details)

    def __str__(self) -> str:
        return f"QueryTimeoutError: Query timed out after {self.timeout}s - {self.query}"
