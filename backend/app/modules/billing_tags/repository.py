from datetime import date

from sqlmodel import Session, text

from app.modules.billing_tags.dialects import (
    SqlBackend,
    SqlDialect,
    billing_tag_expression,
    get_dialect,
)
from app.modules.billing_tags.models import LOG_TYPE_CONSUME

_FROM_CLAUSE = """
    FROM logs
    LEFT JOIN tokens
        ON logs.token_name = tokens.name
        AND logs.user_id = tokens.user_id
        AND tokens.deleted_at IS NULL
    INNER JOIN users ON logs.user_id = users.id
"""


def _where_clause(dialect: SqlDialect) -> str:
    return (
        f"WHERE logs.type = {LOG_TYPE_CONSUME}\n"
        f"    AND {dialect.created_date('logs.created_at')}"
        f" BETWEEN {dialect.date_param('start_date')} AND {dialect.date_param('end_date')}"
    )


def build_statistics_query(dialect: SqlDialect) -> str:
    tag = billing_tag_expression(dialect)
    return f"""
    SELECT
        {tag} AS billing_tag,
        COUNT(*) AS request_count,
        COALESCE(SUM(logs.quota), 0) AS quota,
        COALESCE(SUM(logs.prompt_tokens), 0) AS prompt_tokens,
        COALESCE(SUM(logs.completion_tokens), 0) AS completion_tokens,
        COALESCE(SUM(logs.request_time), 0) AS request_time
    {_FROM_CLAUSE}
    {_where_clause(dialect)}
    GROUP BY {tag}
    ORDER BY quota DESC, billing_tag ASC
    """


def build_model_usage_query(dialect: SqlDialect) -> str:
    tag = billing_tag_expression(dialect)
    return f"""
    SELECT
        {tag} AS billing_tag,
        logs.model_name AS model_name,
        COUNT(*) AS request_count
    {_FROM_CLAUSE}
    {_where_clause(dialect)}
    GROUP BY {tag}, logs.model_name
    ORDER BY billing_tag ASC, request_count DESC, model_name ASC
    """


def _to_int(value) -> int:
    # SUM() comes back as Decimal on PostgreSQL and MySQL.
    return int(value or 0)


class BillingTagRepository:
    def __init__(self, session: Session, backend: SqlBackend):
        self.session = session
        self.dialect = get_dialect(backend)

    @staticmethod
    def _params(start_date: date, end_date: date) -> dict:
        return {"start_date": start_date.isoformat(), "end_date": end_date.isoformat()}

    def statistics_by_period(self, start_date: date, end_date: date) -> list[dict]:
        rows = self.session.connection().execute(
            text(build_statistics_query(self.dialect)),
            self._params(start_date, end_date),
        ).all()
        return [
            {
                "billing_tag": str(row.billing_tag) if row.billing_tag is not None else "",
                "request_count": _to_int(row.request_count),
                "quota": _to_int(row.quota),
                "prompt_tokens": _to_int(row.prompt_tokens),
                "completion_tokens": _to_int(row.completion_tokens),
                "request_time": _to_int(row.request_time),
            }
            for row in rows
        ]

    def model_usage_by_period(self, start_date: date, end_date: date) -> list[dict]:
        rows = self.session.connection().execute(
            text(build_model_usage_query(self.dialect)),
            self._params(start_date, end_date),
        ).all()
        return [
            {
                "billing_tag": str(row.billing_tag) if row.billing_tag is not None else "",
                "model_name": row.model_name or "",
                "request_count": _to_int(row.request_count),
            }
            for row in rows
        ]
