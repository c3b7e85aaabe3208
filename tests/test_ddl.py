from __future__ import annotations

import pytest

from dbadmin.ddl import DDLBuilder, type_family, types_compatible
from dbadmin.errors.exceptions import (
    AlreadyExistsError,
    IncompleteForeignKeyError,
    InvalidIdentifierError,
    InvalidInputError,
    MissingPrimaryKeyError,
    TypeMismatchError,
)
from dbadmin.types import ColumnBuilderSpec as Col


def _lookup(types):
    return lambda table, column: types.get((table, column))


def test_users_table_has_primary_key_and_no_foreign_key():
    sql = DDLBuilder().build_create_table(
        "users",
        [
            Col("id", "INT", primary_key=True, auto_increment=True, not_null=True),
            Col("name", "VARCHAR(255)", not_null=True),
        ],
    )

    assert sql.startswith("CREATE TABLE `users` (")
    assert "`id` INT NOT NULL AUTO_INCREMENT" in sql
    assert "`name` VARCHAR(255) NOT NULL" in sql
    assert "PRIMARY KEY (`id`)" in sql
    assert "FOREIGN KEY" not in sql
    assert sql.endswith(") ENGINE=InnoDB DEFAULT CHARSET=utf8mb4")


def test_int_to_bigint_foreign_key_is_accepted():
    builder = DDLBuilder(
        existing_tables=["customers"],
        column_type_lookup=_lookup({("customers", "id"): "bigint"}),
    )
    sql = builder.build_create_table(
        "orders",
        [
            Col("id", "INT", primary_key=True),
            Col(
                "customer_id",
                "INT",
                foreign_key=True,
                referenced_table="customers",
                referenced_column="id",
            ),
        ],
    )
    assert (
        "CONSTRAINT `fk_orders_customer_id_0` FOREIGN KEY (`customer_id`) "
        "REFERENCES `customers`(`id`)"
    ) in sql


def test_varchar_to_int_foreign_key_is_type_mismatch():
    builder = DDLBuilder(
        existing_tables=["customers"],
        column_type_lookup=_lookup({("customers", "id"): "int"}),
    )
    with pytest.raises(TypeMismatchError) as ei:
        builder.build_create_table(
            "orders",
            [
                Col("id", "INT", primary_key=True),
                Col(
                    "customer_id",
                    "VARCHAR(10)",
                    foreign_key=True,
                    referenced_table="customers",
                    referenced_column="id",
                ),
            ],
        )
    assert ei.value.extra == {"columnType": "VARCHAR(10)", "referencedType": "int"}


def test_unresolvable_referenced_type_skips_compatibility_check():
    builder = DDLBuilder(column_type_lookup=_lookup({}))
    sql = builder.build_create_table(
        "orders",
        [
            Col("id", "INT", primary_key=True),
            Col("ref", "TEXT", foreign_key=True, referenced_table="other", referenced_column="id"),
        ],
    )
    assert "REFERENCES `other`(`id`)" in sql


def test_self_reference_resolves_type_from_statement():
    with pytest.raises(TypeMismatchError):
        DDLBuilder().build_create_table(
            "nodes",
            [
                Col("id", "INT", primary_key=True),
                Col("parent", "VARCHAR(5)", foreign_key=True, referenced_table="nodes", referenced_column="id"),
            ],
        )


def test_integer_id_column_is_promoted_to_primary_key():
    sql = DDLBuilder().build_create_table(
        "tags", [Col("id", "BIGINT"), Col("label", "VARCHAR(50)")]
    )
    assert "PRIMARY KEY (`id`)" in sql


def test_missing_primary_key():
    with pytest.raises(MissingPrimaryKeyError):
        DDLBuilder().build_create_table("notes", [Col("body", "TEXT")])


def test_non_integer_id_is_not_promoted():
    with pytest.raises(MissingPrimaryKeyError):
        DDLBuilder().build_create_table("notes", [Col("id", "VARCHAR(36)")])


def test_only_a_column_named_exactly_id_is_promoted():
    with pytest.raises(MissingPrimaryKeyError):
        DDLBuilder().build_create_table("notes", [Col("ID", "INT"), Col("body", "TEXT")])


def test_foreign_key_without_referenced_table_is_incomplete():
    with pytest.raises(IncompleteForeignKeyError) as ei:
        DDLBuilder().build_create_table(
            "orders",
            [Col("id", "INT", primary_key=True), Col("customer_id", "INT", foreign_key=True)],
        )
    assert "no referenced table" in ei.value.message


def test_foreign_key_without_referenced_column_is_incomplete():
    with pytest.raises(IncompleteForeignKeyError) as ei:
        DDLBuilder().build_create_table(
            "orders",
            [
                Col("id", "INT", primary_key=True),
                Col("customer_id", "INT", foreign_key=True, referenced_table="customers"),
            ],
        )
    assert "no referenced column" in ei.value.message


def test_existing_table_name_is_rejected():
    with pytest.raises(AlreadyExistsError):
        DDLBuilder(existing_tables=["users"]).build_create_table(
            "users", [Col("id", "INT", primary_key=True)]
        )


def test_table_names_differing_in_case_are_distinct():
    sql = DDLBuilder(existing_tables=["Users"]).build_create_table(
        "users", [Col("id", "INT", primary_key=True)]
    )
    assert sql.startswith("CREATE TABLE `users`")


@pytest.mark.parametrize(
    "table_name, columns, error",
    [
        ("", [Col("id", "INT", primary_key=True)], InvalidInputError),
        ("bad name", [Col("id", "INT", primary_key=True)], InvalidIdentifierError),
        ("t", [], InvalidInputError),
        ("t", [Col("", "INT")], InvalidInputError),
        ("t", [Col("id", "INT", primary_key=True), Col("ID", "INT")], InvalidInputError),
        ("t", [Col("id", "INT); DROP TABLE x; --", primary_key=True)], InvalidInputError),
        ("t", [Col("id", "INT", primary_key=True), Col("x", "TEXT", auto_increment=True)], InvalidInputError),
    ],
)
def test_rejected_definitions(table_name, columns, error):
    with pytest.raises(error):
        DDLBuilder().build_create_table(table_name, columns)


def test_composite_primary_key_and_unsigned_type():
    sql = DDLBuilder().build_create_table(
        "order_items",
        [
            Col("order_id", "INT UNSIGNED", primary_key=True, not_null=True),
            Col("line_no", "SMALLINT", primary_key=True, not_null=True),
            Col("price", "DECIMAL(10,2)"),
        ],
    )
    assert "PRIMARY KEY (`order_id`, `line_no`)" in sql
    assert "`price` DECIMAL(10,2)" in sql


def test_type_families():
    assert type_family("int(11) unsigned") == "integer"
    assert type_family("varchar(20)") == "string"
    assert type_family("DECIMAL(10,2)") == "numeric"
    assert type_family("DATETIME") is None
    assert types_compatible("DATETIME", "datetime")
    assert not types_compatible("DATE", "DATETIME")
