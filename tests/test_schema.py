import sqlite3

import pytest

from stockroom.schema import (
    CUSTOMER,
    CUSTOMER_MIGRATION,
    EMPLOYEE_MIGRATION,
    PRODUCTS,
    PRODUCTS_MIGRATION,
    SUPPLIER_MIGRATION,
    TRANSACTIONS,
    TRANSACTIONS_MIGRATION,
    Column,
    ColumnType,
    Migration,
    Table,
    TransactionType,
)

ALL_MIGRATIONS = [
    PRODUCTS_MIGRATION,
    CUSTOMER_MIGRATION,
    TRANSACTIONS_MIGRATION,
    EMPLOYEE_MIGRATION,
    SUPPLIER_MIGRATION,
]


@pytest.fixture
def conn():
    connection = sqlite3.connect(":memory:")
    yield connection
    connection.close()


def _table_columns(conn, name):
    return [row[1] for row in conn.execute(f'PRAGMA table_info("{name}")')]


def _tables(conn):
    return {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}


def test_migration_names_follow_source_order(conn):
    PRODUCTS_MIGRATION.up(conn)
    CUSTOMER_MIGRATION.up(conn)
    TRANSACTIONS_MIGRATION.up(conn)
    EMPLOYEE_MIGRATION.up(conn)
    SUPPLIER_MIGRATION.up(conn)
    assert [m.name for m in ALL_MIGRATIONS] == [
        "m20230730_000001_products",
        "m20230730_000002_customer",
        "m20230730_000003_transactions",
        "m20230730_000004_employee",
        "m20230730_000005_supplier",
    ]
    assert _tables(conn) == {"Products", "Customer", "Transactions", "Employee", "Supplier"}


def test_transaction_type_values():
    values = ["in", "out", "pending-in", "pending-out", "saved", "quote"]
    assert [TransactionType(value) for value in values] == list(TransactionType)
    assert [TransactionType(value).value for value in values] == values


def test_products_column_order():
    assert PRODUCTS.column_names()[:5] == ["sku", "name", "name_long", "tenant_id", "company"]
    assert PRODUCTS.column_names()[-2:] == ["created_at", "updated_at"]


@pytest.mark.parametrize("migration", ALL_MIGRATIONS, ids=lambda m: m.name)
def test_up_creates_table_with_columns(conn, migration):
    Migration.up(migration, conn)
    assert _table_columns(conn, migration.table.name) == Table.column_names(migration.table)


@pytest.mark.parametrize("migration", ALL_MIGRATIONS, ids=lambda m: m.name)
def test_down_removes_table(conn, migration):
    Migration.up(migration, conn)
    assert migration.table.name in _tables(conn)
    Migration.down(migration, conn)
    assert migration.table.name not in _tables(conn)


def test_down_without_table_raises(conn):
    with pytest.raises(sqlite3.OperationalError):
        CUSTOMER_MIGRATION.down(conn)


def test_up_twice_raises(conn):
    CUSTOMER_MIGRATION.up(conn)
    with pytest.raises(sqlite3.OperationalError):
        CUSTOMER_MIGRATION.up(conn)


def test_products_index_created(conn):
    PRODUCTS_MIGRATION.up(conn)
    index_names = [row[1] for row in conn.execute('PRAGMA index_list("Products")')]
    assert "indx" in index_names
    indexed = [row[2] for row in conn.execute('PRAGMA index_info("indx")')]
    assert indexed == ["name", "company"]


def test_primary_key_is_enforced(conn):
    CUSTOMER_MIGRATION.up(conn)
    row = ("c1", "Alice", "t1", "{}", "[]", 0, "[]", 1, "2023-01-01", "2023-01-01")
    placeholders = ", ".join("?" for _ in row)
    conn.execute(f'INSERT INTO "Customer" VALUES ({placeholders})', row)
    with pytest.raises(sqlite3.IntegrityError):
        conn.execute(f'INSERT INTO "Customer" VALUES ({placeholders})', row)


def test_not_null_is_enforced(conn):
    CUSTOMER_MIGRATION.up(conn)
    with pytest.raises(sqlite3.IntegrityError):
        conn.execute('INSERT INTO "Customer" ("id") VALUES (?)', ("c1",))


def _transaction_row(kind):
    return (
        "tx1", "t1", "{}", kind, "[]", 100, "[]",
        "2023-01-01", "[]", "emp", "kiosk", "2023-01-01", "2023-01-01",
    )


@pytest.mark.parametrize("kind", list(TransactionType))
def test_transaction_type_accepts_known_values(conn, kind):
    TRANSACTIONS_MIGRATION.up(conn)
    conn.execute(f'INSERT INTO "Transactions" VALUES ({", ".join("?" * 13)})', _transaction_row(kind.value))
    stored = conn.execute('SELECT "transaction_type" FROM "Transactions"').fetchone()[0]
    assert TransactionType(stored) is kind


def test_transaction_type_rejects_unknown_value(conn):
    TRANSACTIONS_MIGRATION.up(conn)
    with pytest.raises(sqlite3.IntegrityError):
        conn.execute(f'INSERT INTO "Transactions" VALUES ({", ".join("?" * 13)})', _transaction_row("refund"))


def test_enum_column_lists_every_choice():
    sql = TRANSACTIONS.create_sql()
    assert '"transaction_type"' in sql
    assert all(f"'{t.value}'" in sql for t in TransactionType)


def test_column_sql_primary_key():
    sql = Column("sku", ColumnType.STRING, primary_key=True).sql()
    assert sql == '"sku" VARCHAR(255) NOT NULL PRIMARY KEY'


def test_nullable_column_sql_omits_not_null():
    sql = Column("note", ColumnType.TEXT, nullable=True).sql()
    assert sql == '"note" TEXT'


def test_create_and_drop_sql_name_table():
    assert CUSTOMER.create_sql().startswith('CREATE TABLE "Customer" (')
    assert CUSTOMER.drop_sql() == 'DROP TABLE "Customer"'


def test_enum_column_requires_choices():
    with pytest.raises(ValueError):
        Column("kind", ColumnType.ENUM)


def test_choices_only_on_enum():
    with pytest.raises(ValueError):
        Column("kind", ColumnType.TEXT, choices=("a",))


def test_table_rejects_duplicate_columns():
    with pytest.raises(ValueError):
        Table("Dup", (Column("a", ColumnType.TEXT), Column("a", ColumnType.JSON)))


def test_table_rejects_no_columns():
    with pytest.raises(ValueError):
        Table("Empty", ())


def test_custom_migration_runs_extra_sql(conn):
    table = Table("Things", (Column("id", ColumnType.STRING, primary_key=True),))
    migration = Migration("things", table, ('CREATE INDEX "things_id" ON "Things" ("id")',))
    migration.up(conn)
    assert "things_id" in [row[1] for row in conn.execute('PRAGMA index_list("Things")')]
    migration.down(conn)
    assert "Things" not in _tables(conn)