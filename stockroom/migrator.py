"""Ordered schema migrations and a runner that records which have been applied."""

from __future__ import annotations

import time
from typing import Any

from .schema import (
    CUSTOMER_MIGRATION,
    EMPLOYEE_MIGRATION,
    PRODUCTS_MIGRATION,
    SUPPLIER_MIGRATION,
    TRANSACTIONS_MIGRATION,
    Migration,
)
from .tables import (
    AUTH_RECORD_MIGRATION,
    KIOSK_MIGRATION,
    PROMOTION_MIGRATION,
    SESSION_MIGRATION,
    STORE_MIGRATION,
    TENANTS_MIGRATION,
)

TRACKING_TABLE = "seaql_migrations"


class MigrationError(RuntimeError):
    """Raised when the recorded migrations do not match the known ones."""


def migrations() -> list[Migration]:
    """All migrations, in the order they must be applied."""
    return [
        PRODUCTS_MIGRATION,
        CUSTOMER_MIGRATION,
        TRANSACTIONS_MIGRATION,
        EMPLOYEE_MIGRATION,
        SUPPLIER_MIGRATION,
        SESSION_MIGRATION,
        STORE_MIGRATION,
        PROMOTION_MIGRATION,
        KIOSK_MIGRATION,
        AUTH_RECORD_MIGRATION,
        TENANTS_MIGRATION,
    ]


def _check_steps(steps: int | None) -> None:
    if steps is not None and steps < 0:
        raise ValueError(f"steps must not be negative, got {steps}")


class Migrator:
    """Applies and rolls back migrations on a DB-API connection."""

    def __init__(self, conn: Any) -> None:
        self.conn = conn
        self.conn.execute(
            f'CREATE TABLE IF NOT EXISTS "{TRACKING_TABLE}" '
            "( version VARCHAR(255) NOT NULL PRIMARY KEY, applied_at BIGINT NOT NULL )"
        )
        self._commit()

    def _commit(self) -> None:
        commit = getattr(self.conn, "commit", None)
        if commit is not None:
            commit()

    def applied(self) -> list[str]:
        """Names of the applied migrations, oldest first."""
        rows = self.conn.execute(
            f'SELECT version FROM "{TRACKING_TABLE}" ORDER BY version'
        ).fetchall()
        return [row[0] for row in rows]

    def _applied_migrations(self) -> list[Migration]:
        known = {migration.name: migration for migration in migrations()}
        result = []
        for name in self.applied():
            if name not in known:
                raise MigrationError(f"migration file of version {name!r} is missing")
            result.append(known[name])
        return result

    def pending(self) -> list[Migration]:
        """Migrations not yet applied, in the order they will be applied."""
        done = {migration.name for migration in self._applied_migrations()}
        return [migration for migration in migrations() if migration.name not in done]

    def up(self, steps: int | None = None) -> list[str]:
        """Apply up to ``steps`` pending migrations (all when None); return their names."""
        _check_steps(steps)
        todo = self.pending()
        if steps is not None:
            todo = todo[:steps]
        for migration in todo:
            migration.up(self.conn)
            self.conn.execute(
                f'INSERT INTO "{TRACKING_TABLE}" (version, applied_at) VALUES (?, ?)',
                (migration.name, int(time.time())),
            )
            self._commit()
        return [migration.name for migration in todo]

    def down(self, steps: int | None = None) -> list[str]:
        """Roll back up to ``steps`` applied migrations (all when None), newest first."""
        _check_steps(steps)
        todo = list(reversed(self._applied_migrations()))
        if steps is not None:
            todo = todo[:steps]
        for migration in todo:
            migration.down(self.conn)
            self.conn.execute(
                f'DELETE FROM "{TRACKING_TABLE}" WHERE version = ?',
                (migration.name,),
            )
            self._commit()
        return [migration.name for migration in todo]