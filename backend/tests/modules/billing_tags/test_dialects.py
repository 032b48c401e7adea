import pytest
from sqlmodel import text

from app.core.config import Settings
from app.modules.billing_tags.dialects import (
    SqlBackend,
    billing_tag_expression,
    get_dialect,
)
from app.modules.billing_tags.repository import (
    build_model_usage_query,
    build_statistics_query,
)


@pytest.mark.parametrize(
    "name, expected",
    [
        ("postgresql", SqlBackend.POSTGRESQL),
        ("postgresql+psycopg", SqlBackend.POSTGRESQL),
        ("postgres", SqlBackend.POSTGRESQL),
        ("MySQL", SqlBackend.MYSQL),
        ("mysql+pymysql", SqlBackend.MYSQL),
        ("mariadb", SqlBackend.MYSQL),
        ("sqlite", SqlBackend.SQLITE),
    ],
)
def test_backend_from_name(name, expected):
    assert SqlBackend.from_name(name) is expected


def test_unknown_backend_is_rejected():
    with pytest.raises(ValueError, match="Unsupported database backend 'oracle'"):
        SqlBackend.from_name("oracle")


def test_group_column_is_quoted_per_backend():
    assert billing_tag_expression(get_dialect(SqlBackend.POSTGRESQL)).endswith('users."group")')
    assert billing_tag_expression(get_dialect(SqlBackend.SQLITE)).endswith('users."group")')
    assert billing_tag_expression(get_dialect(SqlBackend.MYSQL)).endswith("users.`group`)")


def test_postgresql_statistics_query():
    query = build_statistics_query(get_dialect(SqlBackend.POSTGRESQL))

    # setting may be text, json or jsonb; NULLIF only runs on the text form.
    assert "CAST(NULLIF(CAST(tokens.setting AS TEXT), '') AS JSONB) ->> 'billing_tag'" in query
    assert "NULLIF(tokens.setting, '')" not in query
    assert (
        "CAST(TO_TIMESTAMP(logs.created_at) AT TIME ZONE 'UTC' AS DATE)"
        " BETWEEN CAST(:start_date AS DATE) AND CAST(:end_date AS DATE)"
    ) in query
    assert "ORDER BY quota DESC, billing_tag ASC" in query


def test_mysql_model_usage_query():
    query = build_model_usage_query(get_dialect(SqlBackend.MYSQL))

    assert "JSON_UNQUOTE(NULLIF(JSON_EXTRACT(NULLIF(tokens.setting, ''), '$.billing_tag')" in query
    assert (
        "DATE(DATE_ADD('1970-01-01', INTERVAL logs.created_at SECOND))"
        " BETWEEN CAST(:start_date AS DATE) AND CAST(:end_date AS DATE)"
    ) in query
    assert "CONVERT_TZ" not in query
    assert "ORDER BY billing_tag ASC, request_count DESC, model_name ASC" in query


@pytest.mark.parametrize("backend", list(SqlBackend))
def test_queries_share_joins_and_filters(backend):
    dialect = get_dialect(backend)
    for query in (build_statistics_query(dialect), build_model_usage_query(dialect)):
        assert "LEFT JOIN tokens" in query
        assert "AND tokens.deleted_at IS NULL" in query
        assert "INNER JOIN users ON logs.user_id = users.id" in query
        assert "WHERE logs.type = 2" in query
        assert set(text(query).compile().params) == {"start_date", "end_date"}


def test_settings_detect_backend_from_url():
    settings = Settings(APP_DATABASE_URL="mysql+pymysql://user:pw@db:3306/gateway")

    assert settings.sql_backend is SqlBackend.MYSQL


def test_settings_backend_override():
    settings = Settings(APP_DATABASE_URL="sqlite:///gateway.db", DB_BACKEND="postgres")

    assert settings.sql_backend is SqlBackend.POSTGRESQL


def test_settings_derive_postgres_url():
    settings = Settings(APP_DATABASE_URL="", POSTGRES_HOST="db", POSTGRES_PASSWORD="s3cr@t")

    assert settings.app_database_url.startswith("postgresql+psycopg://postgres:s3cr%40t@db:5432/")
    assert settings.sql_backend is SqlBackend.POSTGRESQL


@pytest.mark.parametrize(
    "url",
    [
        "postgresql+psycopg://postgres:your-db-password@db/gateway",
        "mysql+pymysql://root:<password>@db:3306/gateway",
        "postgresql+psycopg://postgres:pw@<host>:5432/gateway",
    ],
)
def test_settings_reject_placeholder_url(url):
    settings = Settings(APP_DATABASE_URL=url)

    with pytest.raises(ValueError, match="placeholder"):
        _ = settings.app_database_url


def test_settings_keep_urls_without_placeholders():
    url = "postgresql+psycopg://postgres:pw@db.project-ref.example.com:5432/gateway"

    assert Settings(APP_DATABASE_URL=url).app_database_url == url
