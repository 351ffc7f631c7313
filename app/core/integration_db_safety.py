from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from sqlalchemy.engine import URL, make_url

TEST_DB_NAME_RE = re.compile(r"test", re.IGNORECASE)
ALLOWED_LOCAL_HOSTS = frozenset(
    {
        "localhost",
        "127.0.0.1",
        "::1",
        "postgres",
        "duel_arena_postgres",
    }
)


@dataclass(frozen=True, slots=True)
class IntegrationDbSafetyResult:
    is_safe: bool
    reason: str
    database_name: str
    host: str


def _is_postgres(url: URL, allowed_hosts: frozenset[str]) -> bool:
    return url.get_backend_name() == "postgresql"


def _has_name(url: URL, allowed_hosts: frozenset[str]) -> bool:
    return bool((url.database or "").strip())


def _looks_like_test_db(url: URL, allowed_hosts: frozenset[str]) -> bool:
    return TEST_DB_NAME_RE.search(url.database or "") is not None


def _is_local_host(url: URL, allowed_hosts: frozenset[str]) -> bool:
    return (url.host or "").strip().lower() in allowed_hosts


# Evaluated in order; the first failing rule decides the reason.
_RULES: tuple[tuple[Callable[[URL, frozenset[str]], bool], str], ...] = (
    (_is_postgres, "Integration tests require a PostgreSQL test database."),
    (_has_name, "Database name is empty."),
    (_looks_like_test_db, "Database name must clearly indicate a test database (contain 'test')."),
    (_is_local_host, "Host is not an allowed local integration-test host."),
)


def assess_integration_db_safety(
    database_url: str,
    *,
    extra_hosts: Iterable[str] = (),
) -> IntegrationDbSafetyResult:
    parsed = make_url(database_url)
    allowed_hosts = ALLOWED_LOCAL_HOSTS | {host.strip().lower() for host in extra_hosts if host.strip()}
    db_name = (parsed.database or "").strip()
    host = (parsed.host or "").strip().lower()

    for rule, reason in _RULES:
        if not rule(parsed, allowed_hosts):
            return IntegrationDbSafetyResult(is_safe=False, reason=reason, database_name=db_name, host=host)
    return IntegrationDbSafetyResult(is_safe=True, reason="ok", database_name=db_name, host=host)


def assert_safe_integration_db(
    database_url: str,
    *,
    tables: Iterable[str] = (),
    extra_hosts: Iterable[str] = (),
) -> None:
    """Refuses to continue unless the URL points at a local PostgreSQL test DB.

    Integration fixtures truncate the engine tables before every test, so this
    runs once per session before any of them touch the database.
    """
    result = assess_integration_db_safety(database_url, extra_hosts=extra_hosts)
    if result.is_safe:
        return

    table_list = ", ".join(tables) or "all engine tables"
    raise RuntimeError(
        "Refusing to run integration tests with destructive TRUNCATE.\n"
        f"Reason: {result.reason}\n"
        f"Resolved DB: name='{result.database_name}' host='{result.host}'\n"
        f"Tables that would be truncated: {table_list}\n"
        "Required: use a dedicated local PostgreSQL test DB, e.g. 'duel_arena_test'."
    )
