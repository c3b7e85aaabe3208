"""Portable smoke requests for the MySQL admin API.

- Creates a throwaway database with a parent/child pair of tables
- Exercises insert, read, the foreign-key conflict path and a forced delete
- Drops the database again
- Exits non-zero on failure (so Make/CI can trust it)

Env:
  API_BASE:      base URL of API (default: http://127.0.0.1:8000)
  API_PREFIX:    route prefix (default: /api)
  SMOKE_DB_NAME: database to create (default: dbadmin_smoke)
"""

from __future__ import annotations

import json
import os
import time

import requests


API_BASE = os.getenv("API_BASE", "http://127.0.0.1:8000").rstrip("/")
API_PREFIX = os.getenv("API_PREFIX", "/api").rstrip("/")
DB_NAME = os.getenv("SMOKE_DB_NAME", "dbadmin_smoke")
TIMEOUT_S = float(os.getenv("SMOKE_TIMEOUT", "30"))


def _call(method: str, path: str, **kwargs) -> dict:
    url = f"{API_BASE}{API_PREFIX}{path}"
    t0 = time.time()
    resp = requests.request(method, url, timeout=TIMEOUT_S, **kwargs)
    dt_ms = int(round((time.time() - t0) * 1000))

    out: object
    try:
        out = resp.json()
    except ValueError:
        out = {"raw": resp.text}

    print(f"{method} {path} -> HTTP {resp.status_code} | {dt_ms} ms")
    return {"status": resp.status_code, "latency_ms": dt_ms, "body": out}


def _get_error_code(body: object) -> str | None:
    """Extract error.code from the API response shape if present."""
    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict) and err.get("code") is not None:
            return str(err["code"])
    return None


def _column(name: str, type_: str, **flags) -> dict:
    return {"name": name, "type": type_, **flags}


def main() -> int:
    checks: list[tuple[str, bool]] = []

    _call("DELETE", f"/databases/{DB_NAME}")  # leftovers from a previous run

    r = _call("POST", "/databases", json={"databaseName": DB_NAME})
    checks.append(("create database", r["status"] == 201))

    r = _call("POST", "/use-database", json={"database": DB_NAME})
    checks.append(("use database", r["status"] == 200))

    r = _call(
        "POST",
        "/tables",
        json={
            "tableName": "customers",
            "columns": [
                _column("id", "INT", primaryKey=True, autoIncrement=True, notNull=True),
                _column("name", "VARCHAR(255)", notNull=True),
            ],
        },
    )
    checks.append(("create customers", r["status"] == 201))

    r = _call(
        "POST",
        "/tables",
        json={
            "tableName": "orders",
            "columns": [
                _column("id", "INT", primaryKey=True, autoIncrement=True, notNull=True),
                _column(
                    "customer_id",
                    "BIGINT",
                    foreignKey=True,
                    referencedTable="customers",
                    referencedColumn="id",
                ),
            ],
        },
    )
    checks.append(("create orders", r["status"] == 201))

    r = _call(
        "POST",
        "/tables/customers/data",
        json={
            "data": {"name": "Ada"},
            "relatedRecords": [
                {
                    "table": "orders",
                    "data": {},
                    "linkField": "customer_id",
                    "linkToField": "id",
                }
            ],
        },
    )
    checks.append(("insert with related", r["status"] == 201))
    customer_id = r["body"].get("id") if isinstance(r["body"], dict) else None

    r = _call("GET", "/tables/orders/data", params={"page": 1, "limit": 10})
    checks.append(("read orders", r["status"] == 200))
    print(json.dumps(r["body"], indent=2)[:800])

    r = _call("DELETE", f"/tables/customers/data/{customer_id}")
    checks.append(
        ("delete blocked", r["status"] == 409 and _get_error_code(r["body"]) == "CONSTRAINT_CONFLICT")
    )

    r = _call("DELETE", f"/tables/customers/data/{customer_id}", params={"force": "true"})
    checks.append(("forced delete", r["status"] == 200))

    r = _call("POST", "/query", json={"query": "SELECT COUNT(*) AS n FROM customers"})
    checks.append(("query", r["status"] == 200))

    r = _call("DELETE", f"/databases/{DB_NAME}")
    checks.append(("drop database", r["status"] == 200))

    ok_all = True
    for name, ok in checks:
        print(f"{'✅' if ok else '❌'} {name}")
        ok_all = ok_all and ok

    if ok_all:
        print("\n✅ api-smoke passed")
        return 0

    print("\n❌ api-smoke failed (see output above)")
    return 4


if __name__ == "__main__":
    raise SystemExit(main())
