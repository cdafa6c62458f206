# stockroom

Database plumbing for a multi-tenant point-of-sale stock system: the table
schema and its ordered migrations, housekeeping of expired sessions and stale
saved transactions, and ingest of exported tenant data dropped into an
ingress directory.

## Schema

`stockroom.schema` describes tables with `Table` and `Column`:

- `Column(name, type, nullable=False, primary_key=False, choices=())` takes a
  `ColumnType` (`STRING`, `TEXT`, `JSON`, `BIG_INTEGER`, `BOOLEAN`,
  `DATE_TIME`, `ENUM`). An `ENUM` column must have `choices`, and no other
  type may have them. `Column.sql()` gives its definition for `CREATE TABLE`;
  an enumeration becomes a `CHECK ... IN (...)` constraint.
- `Table(name, columns)` rejects an empty name, no columns and repeated column
  names. `column_names()`, `create_sql()` and `drop_sql()` give its column
  names in order and its `CREATE TABLE` and `DROP TABLE` statements.
- `Migration(name, table, extra_sql=())` creates its table in `up(conn)`, then
  runs any extra statements, and drops it in `down(conn)`.

The tables are products, customers, transactions, employees and suppliers
(`stockroom.schema`), and sessions, stores, promotions, kiosks, authentication
records and tenants (`stockroom.tables`). The products migration also creates
an index `indx` on the product name and company.

Transactions carry a `TransactionType`: `in`, `out`, `pending-in`,
`pending-out`, `saved` or `quote`.

## Migrations

`stockroom.migrator.migrations()` returns all eleven migrations in the order
they must be applied. A `Migrator` runs them on a connection that has an
`execute` method (such as `sqlite3.Connection`), recording the applied ones in
a `seaql_migrations` table that it creates if needed:

```python
import sqlite3

from stockroom.migrator import Migrator

conn = sqlite3.connect("stock.db")
migrator = Migrator(conn)
migrator.up()              # apply every pending migration; returns their names
print(migrator.applied())  # names of the applied migrations, oldest first
print(migrator.pending())  # migrations still to apply
migrator.down(1)           # roll back the most recent one
```

`up(steps)` and `down(steps)` handle at most `steps` migrations, or all of
them when `steps` is `None`; a negative count raises `ValueError`. A recorded
migration that is not among the known ones raises `MigrationError`.

## Connecting

- `resolve_database_url(environ)` returns `DATABASE_URL` from `environ`. With
  no mapping it loads a `.env` file, if present, and reads the process
  environment. A missing value raises `DatabaseUrlError`.
- `connect(url)` opens an SQLite database and applies every pending migration.
  It accepts `sqlite:` URLs (`sqlite::memory:`, `sqlite://stock.db`) or a plain
  file path; any other `scheme://` URL raises `ValueError`.

```python
from stockroom.pool import connect, resolve_database_url

conn = connect(resolve_database_url())
```

## Housekeeping

- `cull_expired_sessions(conn, now=None)` deletes every session whose expiry is
  at or before `now` (the current UTC time by default) and returns their ids.
- `cull_saved_transactions(conn, now=None)` deletes every `saved` transaction
  whose order date is an hour or more before `now` and returns their ids.
- `session_garbage_collector(conn, interval=5.0)` is a coroutine that runs both
  every `interval` seconds until it is cancelled, logging database errors
  instead of stopping.

## Ingress

Exported data arrives as JSON files named `<tenant>_<date>`. Each file holds
one array of exactly five arrays: products, customers, transactions, stores
and kiosks.

- `parse_ingress_name(path)` returns the tenant id and date part of the file
  name, splitting at the first `_`; a name without one raises `ValueError`.
- `load_ingress_file(path)` reads a file into an `IngressBundle`, raising
  `ValueError` when its shape is wrong.
- `ingest_file(path, inserter)` calls `inserter(kind, record, session)` for
  every record, in the order stores, products, customers, transactions,
  kiosks, with `kind` one of `"store"`, `"product"`, `"customer"`,
  `"transaction"`, `"kiosk"` and an `IngestSession` for the file's tenant that
  expires a day later. A record whose insert raises is skipped; the return
  value is how many were accepted.

```python
from stockroom.pool import IngressWorker, ingest_file

def inserter(kind, record, session):
    print(session.tenant_id, kind, record)

ingest_file("ingress/acme_2024-01-01", inserter)
```

`IngressWorker(directory, inserter)` watches a directory. `scan()` returns the
files in it that are not already being ingested and marks them as being
ingested. `run(interval=5.0)` scans every `interval` seconds until cancelled,
ingests each new file in a worker thread and then deletes it. A file that
cannot be deleted stays marked, so it is not ingested again.

## What it does not do

- It stores nothing of the ingested records itself: writing products,
  customers, transactions, stores and kiosks to the database is left to the
  `inserter` you pass in.
- `connect` opens SQLite databases only; there is no driver for other servers.
- There is no HTTP server, request handling or command-line program; the
  background jobs run only where your own asyncio program starts them.