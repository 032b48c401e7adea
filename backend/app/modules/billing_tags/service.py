import csv
import io
import logging
from collections.abc import Iterable, Iterator
from datetime import date, datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from app.modules.billing_tags.dialects import SqlBackend
from app.modules.billing_tags.errors import (
    FormatError,
    ParameterError,
    QueryError,
    WriteError,
)
from app.modules.billing_tags.repository import BillingTagRepository

logger = logging.getLogger(__name__)

DATE_FORMAT = "%Y-%m-%d"
UTF8_BOM = "\ufeff"
# Column titles shown in the admin UI; the BOM lets spreadsheet tools read them.
CSV_HEADER = (
    "计费标签",
    "请求次数",
    "额度消耗",
    "输入Tokens",
    "输出Tokens",
    "请求时长(ms)",
)
_CSV_FIELDS = (
    "billing_tag",
    "request_count",
    "quota",
    "prompt_tokens",
    "completion_tokens",
    "request_time",
)


def _parse_date(field: str, value: str) -> date:
    try:
        parsed = datetime.strptime(value, DATE_FORMAT).date()
    except ValueError as exc:
        raise FormatError(field) from exc
    # strptime also accepts "2024-1-5"; only zero-padded dates are valid here.
    if parsed.strftime(DATE_FORMAT) != value:
        raise FormatError(field)
    return parsed


def parse_date_range(start_time: str | None, end_time: str | None) -> tuple[date, date]:
    """Validate the report range. A reversed range is allowed and simply matches nothing."""
    for field, value in (("start_time", start_time), ("end_time", end_time)):
        if value is None or not value.strip():
            raise ParameterError(f"invalid parameters: {field} is required")
    return _parse_date("start_time", start_time), _parse_date("end_time", end_time)


def _query_error(exc: SQLAlchemyError) -> QueryError:
    orig = getattr(exc, "orig", None)
    return QueryError(str(orig) if orig is not None else str(exc))


def get_billing_tag_statistics(
    session: Session,
    backend: SqlBackend,
    start_date: date,
    end_date: date,
) -> list[dict]:
    repository = BillingTagRepository(session, backend)
    try:
        return repository.statistics_by_period(start_date, end_date)
    except SQLAlchemyError as exc:
        raise _query_error(exc) from exc


def get_model_usage_by_billing_tag(
    session: Session,
    backend: SqlBackend,
    start_date: date,
    end_date: date,
) -> list[dict]:
    repository = BillingTagRepository(session, backend)
    try:
        return repository.model_usage_by_period(start_date, end_date)
    except SQLAlchemyError as exc:
        raise _query_error(exc) from exc


def get_billing_tag_report(
    session: Session,
    backend: SqlBackend,
    start_time: str | None,
    end_time: str | None,
) -> dict:
    start_date, end_date = parse_date_range(start_time, end_time)
    statistics = get_billing_tag_statistics(session, backend, start_date, end_date)
    model_usage = get_model_usage_by_billing_tag(session, backend, start_date, end_date)
    logger.info(
        "Billing tag report %s..%s: %d tags, %d tag/model rows",
        start_date,
        end_date,
        len(statistics),
        len(model_usage),
    )
    return {
        "success": True,
        "message": "",
        "data": statistics,
        "model_usage": model_usage,
    }


def export_filename(start_date: date, end_date: date) -> str:
    return f"billing_tag_stats_{start_date.isoformat()}_{end_date.isoformat()}.csv"


def _csv_line(values: Iterable) -> str:
    buffer = io.StringIO()
    csv.writer(buffer, lineterminator="\n").writerow(values)
    return buffer.getvalue()


def iter_statistics_csv(statistics: list[dict]) -> Iterator[bytes]:
    """Yield the export body: BOM + header first, then one encoded line per tag.

    Once the first chunk is sent there is no way to report an error to the
    client, so a failing row ends the stream.
    """
    yield (UTF8_BOM + _csv_line(CSV_HEADER)).encode("utf-8")
    for index, row in enumerate(statistics):
        try:
            line = _csv_line(
                [row["billing_tag"]] + [str(int(row[field])) for field in _CSV_FIELDS[1:]]
            )
            chunk = line.encode("utf-8")
        except (csv.Error, KeyError, TypeError, ValueError, UnicodeError) as exc:
            logger.error("Failed to write billing tag CSV row %d: %s", index, exc)
            raise WriteError(f"failed to write CSV row: {exc}") from exc
        yield chunk


def prepare_statistics_export(
    session: Session,
    backend: SqlBackend,
    start_time: str | None,
    end_time: str | None,
) -> tuple[str, Iterator[bytes]]:
    """Validate and query up front so failures can still be reported as JSON."""
    start_date, end_date = parse_date_range(start_time, end_time)
    statistics = get_billing_tag_statistics(session, backend, start_date, end_date)
    logger.info(
        "Exporting billing tag statistics %s..%s: %d rows",
        start_date,
        end_date,
        len(statistics),
    )
    return export_filename(start_date, end_date), iter_statistics_csv(statistics)
