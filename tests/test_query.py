from __future__ import annotations

import pytest

from dbadmin.errors.exceptions import (
    ConnectionFailureError,
    EngineError,
    InvalidInputError,
    NotFoundError,
)
from dbadmin.query import QueryRunner, classify


@pytest.mark.parametrize(
    "sql, kind",
    [
        ("SELECT * FROM users", "select"),
        ("select 1 union select 2", "select"),
        ("INSERT INTO t (a) VALUES (1)", "dml"),
        ("UPDATE t SET a = 1", "dml"),
        ("DELETE FROM t WHERE id = 3", "dml"),
        ("CREATE TABLE t (id INT)", "ddl"),
        ("DROP TABLE t", "ddl"),
    ],
)
def test_classify(sql, kind):
    assert classify(sql) == (kind, 1)


def test_classify_counts_statements():
    kind, count = classify("SELECT 1; DELETE FROM users")
    assert kind == "select"
    assert count == 2


def test_trailing_semicolon_is_one_statement():
    assert classify("SELECT 1;")[1] == 1


def test_empty_query_is_invalid(fake_session):
    with pytest.raises(InvalidInputError):
        QueryRunner(fake_session).run("   ")
    with pytest.raises(InvalidInputError):
        QueryRunner(fake_session).run(None)
    assert fake_session.statements == []


def test_multiple_statements_are_rejected(fake_session):
    with pytest.raises(InvalidInputError):
        QueryRunner(fake_session).run("SELECT 1; DROP TABLE users")
    assert fake_session.statements == []


def test_select_returns_rows(fake_session):
    fake_session.on("SELECT name", rows=[{"name": "Ada"}, {"name": "Grace"}])

    outcome = QueryRunner(fake_session).run("SELECT name FROM users")

    assert outcome.kind == "select"
    assert outcome.result.returns_rows is True
    assert outcome.result.columns == ["name"]
    assert [r["name"] for r in outcome.result.rows] == ["Ada", "Grace"]


def test_dml_returns_affected_rows(fake_session):
    fake_session.on("UPDATE users", rowcount=3)
    outcome = QueryRunner(fake_session).run("UPDATE users SET active = 0")
    assert outcome.kind == "dml"
    assert outcome.result.affected_rows == 3


def test_engine_refusals_are_reported_as_engine_errors(fake_session):
    fake_session.on("ghost", error=NotFoundError("Table 'shop.ghost' doesn't exist"))
    with pytest.raises(EngineError) as ei:
        QueryRunner(fake_session).run("SELECT * FROM ghost")
    assert ei.value.message == "Table 'shop.ghost' doesn't exist"


def test_connection_failures_pass_through(fake_session):
    fake_session.on("SELECT", error=ConnectionFailureError("Lost connection"))
    with pytest.raises(ConnectionFailureError):
        QueryRunner(fake_session).run("SELECT 1")


@pytest.mark.parametrize("sql", ["USE other_db", "SET FOREIGN_KEY_CHECKS = 0"])
def test_session_altering_statements_discard_the_connection(fake_session, sql):
    outcome = QueryRunner(fake_session).run(sql)
    assert outcome.kind == "other"
    assert fake_session.invalidated is True


def test_failed_session_altering_statement_still_discards_the_connection(fake_session):
    fake_session.on("SET", error=EngineError("Unknown system variable 'bogus'"))
    with pytest.raises(EngineError):
        QueryRunner(fake_session).run("SET bogus = 1")
    assert fake_session.invalidated is True


def test_plain_statements_keep_the_connection(fake_session):
    QueryRunner(fake_session).run("SELECT 1")
    QueryRunner(fake_session).run("UPDATE users SET active = 0")
    assert fake_session.invalidated is False
