class BillingTagReportError(Exception):
    """Base error for billing tag reports; rendered as ``success=false``."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ParameterError(BillingTagReportError):
    """A required query parameter is missing or could not be bound."""


class FormatError(BillingTagReportError):
    """A date parameter is not in YYYY-MM-DD form."""

    def __init__(self, field: str):
        super().__init__(f"invalid {field} format, expected YYYY-MM-DD")
        self.field = field


class QueryError(BillingTagReportError):
    """The aggregation query failed in the database."""


class WriteError(BillingTagReportError):
    """Rendering the CSV export failed after streaming started."""
