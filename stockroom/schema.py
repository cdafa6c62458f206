"""Table definitions and schema migrations for products, customers, transactions, employees and suppliers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


def _quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def _quote_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


class ColumnType(Enum):
    """Logical column types used by the schema."""

    STRING = "string"
    TEXT = "text"
    JSON = "json"
    BIG_INTEGER = "big_integer"
    BOOLEAN = "boolean"
    DATE_TIME = "date_time"
    ENUM = "enum"

    @property
    def sql_type(self) -> str:
        """The SQL type name used in a column definition."""
        return _SQL_TYPES[self]


_SQL_TYPES = {
    ColumnType.STRING: "VARCHAR(255)",
    ColumnType.TEXT: "TEXT",
    ColumnType.JSON: "JSON",
    ColumnType.BIG_INTEGER: "BIGINT",
    ColumnType.BOOLEAN: "BOOLEAN",
    ColumnType.DATE_TIME: "DATETIME",
    ColumnType.ENUM: "TEXT",
}


class TransactionType(str, Enum):
    """The kinds of transaction a transaction row may record."""

    IN = "in"
    OUT = "out"
    PENDING_IN = "pending-in"
    PENDING_OUT = "pending-out"
    SAVED = "saved"
    QUOTE = "quote"


@dataclass(frozen=True)
class Column:
    """A single column of a table."""

    name: str
    type: ColumnType
    nullable: bool = False
    primary_key: bool = False
    choices: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("column name must not be empty")
        if self.type is ColumnType.ENUM and not self.choices:
            raise ValueError(f"enumeration column {self.name!r} needs choices")
        if self.type is not ColumnType.ENUM and self.choices:
            raise ValueError(f"column {self.name!r} is not an enumeration")

    def sql(self) -> str:
        """Return the column definition as it appears in CREATE TABLE."""
        quoted = _quote_identifier(self.name)
        parts = [quoted, self.type.sql_type]
        if not self.nullable:
            parts.append("NOT NULL")
        if self.primary_key:
            parts.append("PRIMARY KEY")
        if self.choices:
            allowed = ", ".join(_quote_literal(choice) for choice in self.choices)
            parts.append(f"CHECK ({quoted} IN ({allowed}))")
        return " ".join(parts)


@dataclass(frozen=True)
class Table:
    """A named table and its ordered columns."""

    name: str
    columns: tuple[Column, ...]

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("table name must not be empty")
        if not self.columns:
            raise ValueError(f"table {self.name!r} has no columns")
        names = self.column_names()
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"table {self.name!r} repeats columns: {', '.join(duplicates)}")

    def column_names(self) -> list[str]:
        """Names of the columns, in definition order."""
        return [column.name for column in self.columns]

    def create_sql(self) -> str:
        """The CREATE TABLE statement for this table."""
        body = ", ".join(column.sql() for column in self.columns)
        return f"CREATE TABLE {_quote_identifier(self.name)} ( {body} )"

    def drop_sql(self) -> str:
        """The DROP TABLE statement for this table."""
        return f"DROP TABLE {_quote_identifier(self.name)}"


@dataclass(frozen=True)
class Migration:
    """A named schema change that creates one table and can drop it again."""

    name: str
    table: Table
    extra_sql: tuple[str, ...] = field(default=())

    def up(self, conn: Any) -> None:
        """Create the table, then run any follow-up statements."""
        conn.execute(self.table.create_sql())
        for statement in self.extra_sql:
            conn.execute(statement)

    def down(self, conn: Any) -> None:
        """Drop the table."""
        conn.execute(self.table.drop_sql())


def _col(name: str, type_: ColumnType, *, primary_key: bool = False) -> Column:
    return Column(name, type_, primary_key=primary_key)


S, T, J = ColumnType.STRING, ColumnType.TEXT, ColumnType.JSON
DT, BI, BO = ColumnType.DATE_TIME, ColumnType.BIG_INTEGER, ColumnType.BOOLEAN

PRODUCTS = Table(
    "Products",
    (
        _col("sku", S, primary_key=True),
        _col("name", S),
        _col("name_long", S),
        _col("tenant_id", S),
        _col("company", S),
        _col("variants", J),
        _col("variant_groups", J),
        _col("images", J),
        _col("tags", J),
        _col("identification", J),
        _col("description", T),
        _col("description_long", T),
        _col("specifications", J),
        _col("visible", J),
        _col("created_at", DT),
        _col("updated_at", DT),
    ),
)

CUSTOMER = Table(
    "Customer",
    (
        _col("id", S, primary_key=True),
        _col("name", T),
        _col("tenant_id", S),
        _col("contact", J),
        _col("customer_notes", J),
        _col("balance", BI),
        _col("special_pricing", J),
        _col("accepts_marketing", BO),
        _col("created_at", DT),
        _col("updated_at", DT),
    ),
)

TRANSACTIONS = Table(
    "Transactions",
    (
        _col("id", S, primary_key=True),
        _col("tenant_id", S),
        _col("customer", J),
        Column(
            "transaction_type",
            ColumnType.ENUM,
            choices=tuple(kind.value for kind in TransactionType),
        ),
        _col("products", J),
        _col("order_total", BI),
        _col("payment", J),
        _col("order_date", DT),
        _col("order_notes", J),
        _col("salesperson", T),
        _col("kiosk", T),
        _col("created_at", DT),
        _col("updated_at", DT),
    ),
)

EMPLOYEE = Table(
    "Employee",
    (
        _col("id", S, primary_key=True),
        _col("tenant_id", S),
        _col("rid", S),
        _col("name", J),
        _col("contact", J),
        _col("auth", J),
        _col("clock_history", J),
        _col("level", J),
        _col("account_type", J),
        _col("created_at", DT),
        _col("updated_at", DT),
    ),
)

SUPPLIER = Table(
    "Supplier",
    (
        _col("id", S, primary_key=True),
        _col("tenant_id", S),
        _col("name", J),
        _col("contact", J),
        _col("transaction_history", J),
        _col("created_at", DT),
        _col("updated_at", DT),
    ),
)

PRODUCTS_MIGRATION = Migration(
    "m20230730_000001_products",
    PRODUCTS,
    ('CREATE INDEX "indx" ON "Products" ("name", "company")',),
)
CUSTOMER_MIGRATION = Migration("m20230730_000002_customer", CUSTOMER)
TRANSACTIONS_MIGRATION = Migration("m20230730_000003_transactions", TRANSACTIONS)
EMPLOYEE_MIGRATION = Migration("m20230730_000004_employee", EMPLOYEE)
SUPPLIER_MIGRATION = Migration("m20230730_000005_supplier", SUPPLIER)

del S, T, J, DT, BI, BO