from __future__ import annotations

import pytest

from dbadmin.errors.exceptions import InvalidInputError, NotFoundError
from dbadmin.reader import PaginatedReader


@pytest.fixture
def items(fake_session):
    fake_session.add_table(
        "items",
        [
            fake_session.col("id", key="PRI", null="NO"),
            fake_session.col("name", "varchar(50)"),
        ],
    )
    return fake_session


def test_page_two_of_twenty_five_rows(items):
    rows = [{"id": i, "name": f"item {i}"} for i in range(11, 21)]
    items.on("SELECT COUNT(*)", rows=[{"total": 25}])
    items.on("SELECT * FROM `items`", rows=rows)

    page = PaginatedReader(items).read_page("items", page=2, limit=10)

    assert len(page.rows) == 10
    assert page.total == 25
    assert page.total_pages == 3
    assert (page.page, page.limit) == (2, 10)

    [stmt] = items.executed("SELECT * FROM `items`")
    assert stmt.params == {"limit": 10, "offset": 10}


def test_filters_are_bound_and_applied_to_count(items):
    items.on("SELECT COUNT(*)", rows=[{"total": 1}])

    PaginatedReader(items).read_page(
        "items", filters={"name": "50%_off", "unknown": "x", "id": ""}
    )

    [count] = items.executed("SELECT COUNT(*)")
    [select] = items.executed("SELECT * FROM `items`")
    assert "WHERE `name` LIKE :f0" in count.sql
    assert "WHERE `name` LIKE :f0" in select.sql
    assert count.params == {"f0": "%50\\%\\_off%"}
    assert "unknown" not in select.sql


def test_sort_is_validated_and_ordered(items):
    PaginatedReader(items).read_page("items", sort="name", order="desc")
    [select] = items.executed("SELECT * FROM `items`")
    assert "ORDER BY `name` DESC LIMIT" in select.sql

    with pytest.raises(InvalidInputError):
        PaginatedReader(items).read_page("items", sort="nope")


def test_limit_is_capped(items):
    page = PaginatedReader(items, max_limit=50).read_page("items", limit=5000)
    assert page.limit == 50


@pytest.mark.parametrize("page, limit", [(0, 10), (1, 0), (-1, 10)])
def test_page_and_limit_must_be_positive(items, page, limit):
    with pytest.raises(InvalidInputError):
        PaginatedReader(items).read_page("items", page=page, limit=limit)


def test_empty_table_has_zero_pages(items):
    items.on("SELECT COUNT(*)", rows=[{"total": 0}])
    page = PaginatedReader(items).read_page("items")
    assert page.rows == []
    assert page.total_pages == 0


def test_referenced_data_follows_foreign_key(orders_schema):
    orders_schema.on("SELECT * FROM `customers`", rows=[{"id": 1, "name": "Ada"}])

    ref = PaginatedReader(orders_schema).referenced_data("orders", "customer_id", limit=1000)

    assert (ref.referenced_table, ref.referenced_column) == ("customers", "id")
    assert ref.rows == [{"id": 1, "name": "Ada"}]
    [stmt] = orders_schema.executed("SELECT * FROM `customers`")
    assert "ORDER BY `id` LIMIT :limit" in stmt.sql
    assert stmt.params == {"limit": 1000}


def test_referenced_data_without_foreign_key_is_not_found(orders_schema):
    with pytest.raises(NotFoundError):
        PaginatedReader(orders_schema).referenced_data("customers", "name")
