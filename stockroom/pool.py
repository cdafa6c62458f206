"""Database connection setup, background clean-up of stale rows and file ingress."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path, PurePath
from typing import Any, Callable, Iterator, Mapping

from dotenv import load_dotenv

from .migrator import Migrator
from .schema import TransactionType

logger = logging.getLogger(__name__)

DEFAULT_INGRESS_DIRECTORY = "./ingress/"
DEFAULT_INTERVAL = 5.0
SESSION_LIFETIME = timedelta(days=1)
SAVED_TRANSACTION_LIFETIME = timedelta(seconds=3600)
SESSION_VARIANT = "AccessToken"

RECORD_KINDS = ("store", "product", "customer", "transaction", "kiosk")


class DatabaseUrlError(RuntimeError):
    """Raised when no database url can be determined."""


def resolve_database_url(environ: Mapping[str, str] | None = None) -> str:
    """Return DATABASE_URL from ``environ``, or from the process environment and a .env file."""
    if environ is None:
        load_dotenv()
        environ = os.environ
    url = environ.get("DATABASE_URL")
    if url is None:
        raise DatabaseUrlError(
            "Was unable to initialize, could not determine the database url. "
            "Reason: DATABASE_URL is not set"
        )
    return url


def _sqlite_target(url: str) -> str:
    if url.startswith("sqlite:"):
        target = url[len("sqlite:"):]
        if target.startswith("//"):
            target = target[2:]
        target = target.split("?", 1)[0]
        return target or ":memory:"
    if "://" in url:
        raise ValueError(f"unsupported database url {url!r}: only sqlite databases are available")
    return url


def connect(url: str) -> sqlite3.Connection:
    """Open the database at ``url`` and bring its schema up to date."""
    target = _sqlite_target(url)
    logger.info("Database URL: %s", url)
    conn = sqlite3.connect(target, check_same_thread=False)
    try:
        Migrator(conn).up()
    except Exception:
        conn.close()
        raise
    return conn


def _now(now: datetime | None) -> datetime:
    return now if now is not None else datetime.now(timezone.utc)


def _timestamp(moment: datetime) -> str:
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment.strftime("%Y-%m-%d %H:%M:%S.%f")


def _delete_rows(conn: Any, table: str, ids: list[str], label: str) -> list[str]:
    culled = []
    for row_id in ids:
        try:
            conn.execute(f'DELETE FROM "{table}" WHERE id = ?', (row_id,))
        except sqlite3.Error as error:
            logger.error("Error in scheduled cron task: %r", error)
            continue
        logger.info("Culled %s %s", label, row_id)
        culled.append(row_id)
    conn.commit()
    return culled


def cull_expired_sessions(conn: Any, now: datetime | None = None) -> list[str]:
    """Delete sessions whose expiry is at or before ``now``; return their ids."""
    rows = conn.execute(
        'SELECT id FROM "Session" WHERE expiry <= ? ORDER BY id',
        (_timestamp(_now(now)),),
    ).fetchall()
    return _delete_rows(conn, "Session", [row[0] for row in rows], "session")


def cull_saved_transactions(conn: Any, now: datetime | None = None) -> list[str]:
    """Delete saved transactions ordered an hour or more before ``now``; return their ids."""
    cutoff = _now(now) - SAVED_TRANSACTION_LIFETIME
    rows = conn.execute(
        'SELECT id FROM "Transactions" WHERE transaction_type = ? AND order_date <= ? ORDER BY id',
        (TransactionType.SAVED.value, _timestamp(cutoff)),
    ).fetchall()
    return _delete_rows(conn, "Transactions", [row[0] for row in rows], "transaction")


async def session_garbage_collector(conn: Any, interval: float = DEFAULT_INTERVAL) -> None:
    """Cull expired sessions and stale saved transactions every ``interval`` seconds, forever."""
    while True:
        for cull in (cull_expired_sessions, cull_saved_transactions):
            try:
                cull(conn)
            except sqlite3.Error as error:
                logger.error("Error in scheduled cron task: %r", error)
        await asyncio.sleep(interval)


@dataclass(frozen=True)
class IngestSession:
    """The session under which ingested records are inserted."""

    tenant_id: str
    expiry: datetime
    id: str = ""
    key: str = ""
    employee: Any = None
    variant: str = SESSION_VARIANT


@dataclass
class IngressBundle:
    """The records held by one ingress file."""

    products: list[Any] = field(default_factory=list)
    customers: list[Any] = field(default_factory=list)
    transactions: list[Any] = field(default_factory=list)
    stores: list[Any] = field(default_factory=list)
    kiosks: list[Any] = field(default_factory=list)


def _bundle_from_data(data: Any) -> IngressBundle:
    if not isinstance(data, list) or len(data) != 5:
        raise ValueError("ingress file must hold an array of exactly five arrays")
    if not all(isinstance(part, list) for part in data):
        raise ValueError("every element of an ingress file must be an array")
    products, customers, transactions, stores, kiosks = data
    return IngressBundle(products, customers, transactions, stores, kiosks)


def _batches(bundle: IngressBundle) -> Iterator[tuple[str, list[Any]]]:
    yield "store", bundle.stores
    yield "product", bundle.products
    yield "customer", bundle.customers
    yield "transaction", bundle.transactions
    yield "kiosk", bundle.kiosks


def parse_ingress_name(path: str | os.PathLike[str]) -> tuple[str, str]:
    """Split an ingress file name into its tenant id and the date it was saved."""
    name = PurePath(path).name
    tenant_id, separator, date_saved = name.partition("_")
    if not separator:
        raise ValueError(f"ingress file name {name!r} has no '_' separating tenant and date")
    return tenant_id, date_saved


def load_ingress_file(path: str | os.PathLike[str]) -> IngressBundle:
    """Read and parse an ingress file."""
    text = Path(path).read_text(encoding="utf-8")
    return _bundle_from_data(json.loads(text))


Inserter = Callable[[str, Any, IngestSession], Any]


def ingest_file(path: str | os.PathLike[str], inserter: Inserter) -> int:
    """Insert every record of an ingress file; return how many the inserter accepted.

    Records go in the order stores, products, customers, transactions, kiosks.
    A record the inserter rejects by raising is skipped.
    """
    bundle = load_ingress_file(path)
    tenant_id, _date_saved = parse_ingress_name(path)
    session = IngestSession(
        tenant_id=tenant_id,
        expiry=datetime.now(timezone.utc) + SESSION_LIFETIME,
    )
    accepted = 0
    for kind, records in _batches(bundle):
        for record in records:
            try:
                inserter(kind, record, session)
            except Exception as error:  # a rejected record must not stop the rest
                logger.debug("Skipped %s record: %s", kind, error)
                continue
            accepted += 1
    return accepted


class IngressWorker:
    """Watches a directory and ingests, then deletes, each file that appears in it."""

    def __init__(self, directory: str | os.PathLike[str], inserter: Inserter) -> None:
        self.directory = os.fspath(directory)
        self.inserter = inserter
        self.ingesting: set[str] = set()
        self._tasks: set[asyncio.Task[None]] = set()

    def scan(self) -> list[str]:
        """Return the files not yet being ingested, and mark them as being ingested."""
        try:
            names = sorted(os.listdir(self.directory))
        except OSError:
            return []
        found = [os.path.join(self.directory, name) for name in names]
        new = [path for path in found if path not in self.ingesting]
        self.ingesting.update(new)
        return new

    async def _process(self, path: str) -> None:
        try:
            await asyncio.to_thread(ingest_file, path, self.inserter)
        except (OSError, ValueError) as error:
            logger.error("Failed to ingest file %s: %s", path, error)
        try:
            os.remove(path)
        except OSError as error:
            # Left marked as ingesting so the file is not picked up again and again.
            logger.error("Failed to remove file after ingest; %s", error)
            return
        self.ingesting.discard(path)

    async def run(self, interval: float = DEFAULT_INTERVAL) -> None:
        """Scan the directory every ``interval`` seconds, forever, ingesting new files."""
        try:
            while True:
                for path in self.scan():
                    task = asyncio.create_task(self._process(path))
                    self._tasks.add(task)
                    task.add_done_callback(self._tasks.discard)
                await asyncio.sleep(interval)
        finally:
            for task in list(self._tasks):
                task.cancel()