"""SQL fragments that differ between the supported database backends.

Only query text changes per backend; rows come back with the same columns
and meaning everywhere.
"""

from dataclasses import dataclass
from enum import Enum

BILLING_TAG_SETTING_KEY = "billing_tag"


class SqlBackend(str, Enum):
    POSTGRESQL = "postgresql"
    MYSQL = "mysql"
    SQLITE = "sqlite"

    @classmethod
    def from_name(cls, name: str) -> "SqlBackend":
        normalized = (name or "").strip().lower()
        # "postgresql+psycopg", "mysql+pymysql", ...
        normalized = normalized.split("+", 1)[0]
        aliases = {"postgres": "postgresql", "pg": "postgresql", "mariadb": "mysql"}
        normalized = aliases.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            supported = ", ".join(backend.value for backend in cls)
            raise ValueError(
                f"Unsupported database backend '{name}'. Expected one of: {supported}."
            ) from None


@dataclass(frozen=True)
class SqlDialect:
    backend: SqlBackend
    json_extract_template: str
    created_date_template: str
    date_param_template: str
    identifier_quote: str

    def quote(self, identifier: str) -> str:
        q = self.identifier_quote
        return f"{q}{identifier.replace(q, q * 2)}{q}"

    def json_text(self, column: str, key: str) -> str:
        """Text value stored under ``key`` in a JSON text column, NULL when missing."""
        return self.json_extract_template.format(column=column, key=key)

    def created_date(self, column: str) -> str:
        """UTC calendar date of a unix-seconds column."""
        return self.created_date_template.format(column=column)

    def date_param(self, name: str) -> str:
        return self.date_param_template.format(name=name)


_DIALECTS: dict[SqlBackend, SqlDialect] = {
    SqlBackend.POSTGRESQL: SqlDialect(
        backend=SqlBackend.POSTGRESQL,
        json_extract_template="CAST(NULLIF(CAST({column} AS TEXT), '') AS JSONB) ->> '{key}'",
        created_date_template="CAST(TO_TIMESTAMP({column}) AT TIME ZONE 'UTC' AS DATE)",
        date_param_template="CAST(:{name} AS DATE)",
        identifier_quote='"',
    ),
    SqlBackend.MYSQL: SqlDialect(
        backend=SqlBackend.MYSQL,
        # JSON null must not come back as the string 'null'.
        json_extract_template=(
            "JSON_UNQUOTE(NULLIF(JSON_EXTRACT(NULLIF({column}, ''), '$.{key}'), "
            "CAST('null' AS JSON)))"
        ),
        # Plain epoch arithmetic; CONVERT_TZ needs the time zone tables loaded.
        created_date_template="DATE(DATE_ADD('1970-01-01', INTERVAL {column} SECOND))",
        date_param_template="CAST(:{name} AS DATE)",
        identifier_quote="`",
    ),
    SqlBackend.SQLITE: SqlDialect(
        backend=SqlBackend.SQLITE,
        json_extract_template="json_extract(NULLIF({column}, ''), '$.{key}')",
        created_date_template="DATE({column}, 'unixepoch')",
        date_param_template=":{name}",
        identifier_quote='"',
    ),
}


def get_dialect(backend: SqlBackend) -> SqlDialect:
    return _DIALECTS[SqlBackend(backend)]


def billing_tag_expression(dialect: SqlDialect) -> str:
    """Effective billing tag: the token's explicit tag, else the user's group."""
    explicit_tag = dialect.json_text("tokens.setting", BILLING_TAG_SETTING_KEY)
    return f"COALESCE(NULLIF({explicit_tag}, ''), users.{dialect.quote('group')})"
