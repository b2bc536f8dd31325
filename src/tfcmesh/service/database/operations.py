# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.17
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/tfcmesh/service/database/operations.py

"""Database operations for the relational file catalog."""

import csv
import io
from typing import Dict, Iterable, List, Optional

from loguru import logger
from sqlalchemy import create_engine, event, insert, select
from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from tfcmesh.models import CatalogEntry, Selector, TransferRecord

from .models import Base, Block, Dataset, File

SNAPSHOT_COLUMNS = {
    "datasets": ("id", "dataset"),
    "blocks": ("id", "block"),
    "files": (
        "id", "lfn", "pfn", "blockid", "datasetid",
        "bytes", "hash", "transferTime", "timestamp",
    ),
}


class DatabaseManager:
    """Manages database connections and operations."""

    def __init__(self, database_url: str):
        """Initialize database manager.

        Args:
            database_url: SQLAlchemy database URL
                e.g., "sqlite:///path/to/tfc.db"
        """
        self.database_url = database_url
        kwargs = {}
        if database_url.startswith("sqlite"):
            kwargs["connect_args"] = {
                "timeout": 30.0,
                "check_same_thread": False,
            }
            if database_url in ("sqlite://", "sqlite:///:memory:"):
                # one shared connection, otherwise every thread sees an empty db
                kwargs["poolclass"] = StaticPool
        self.engine = create_engine(database_url, **kwargs)
        self.SessionLocal = sessionmaker(bind=self.engine)

        if self.dialect == "sqlite":
            self._configure_sqlite()

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    def _configure_sqlite(self):
        """Configure SQLite pragmas on every new connection."""

        @event.listens_for(self.engine, "connect")
        def _set_pragmas(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            # WAL lets the http threads read while a worker commits
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.execute("PRAGMA cache_size=-65536")
            cursor.execute("PRAGMA temp_store=MEMORY")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        logger.debug(f"SQLite configured for {self.database_url}")

    def create_tables(self):
        """Create all database tables."""
        Base.metadata.create_all(self.engine)
        logger.info("Catalog tables ready")

    def get_session(self) -> Session:
        """Get a database session."""
        return self.SessionLocal()

    def _insert_if_absent(self, session: Session, model, **values):
        """Insert a row, doing nothing when a unique constraint already holds it."""
        table = model.__table__
        if self.dialect == "sqlite":
            stmt = sqlite.insert(table).values(**values).on_conflict_do_nothing()
        elif self.dialect == "postgresql":
            stmt = postgresql.insert(table).values(**values).on_conflict_do_nothing()
        elif self.dialect in ("mysql", "mariadb"):
            stmt = mysql.insert(table).values(**values).prefix_with("IGNORE")
        else:
            key = {k: v for k, v in values.items() if k in ("dataset", "block", "lfn", "pfn")}
            found = session.execute(select(table.c.id).filter_by(**key)).first()
            if found is not None:
                return
            try:
                with session.begin_nested():
                    session.execute(insert(table).values(**values))
            except IntegrityError as e:
                logger.debug(f"{table.name} row already present: {e.orig}")
            return
        session.execute(stmt)

    def _resolve_id(self, session: Session, column, value) -> int:
        return session.execute(
            select(column.class_.id).where(column == value)
        ).scalar_one()

    def add_entry(self, entry: CatalogEntry):
        """Insert dataset, block and file rows for one entry in one transaction."""
        with self.get_session() as session, session.begin():
            self._add_in_session(session, entry)

    def add_entries(self, entries: Iterable[CatalogEntry]) -> int:
        """Insert many entries in a single transaction."""
        count = 0
        with self.get_session() as session, session.begin():
            for entry in entries:
                self._add_in_session(session, entry)
                count += 1
        return count

    def _add_in_session(self, session: Session, entry: CatalogEntry):
        self._insert_if_absent(session, Dataset, dataset=entry.dataset)
        self._insert_if_absent(session, Block, block=entry.block)
        datasetid = self._resolve_id(session, Dataset.dataset, entry.dataset)
        blockid = self._resolve_id(session, Block.block, entry.block)
        self._insert_if_absent(
            session,
            File,
            lfn=entry.lfn,
            pfn=entry.pfn,
            blockid=blockid,
            datasetid=datasetid,
            bytes=entry.size,
            hash=entry.digest,
            transferTime=entry.transfer_time,
            timestamp=entry.timestamp,
        )

    def _records_query(self, selector: Selector):
        stmt = (
            select(File, Dataset.dataset, Block.block)
            .join(Dataset, File.datasetid == Dataset.id)
            .join(Block, File.blockid == Block.id)
        )
        if selector.dataset:
            stmt = stmt.where(Dataset.dataset == selector.dataset)
        if selector.block:
            stmt = stmt.where(Block.block == selector.block)
        if selector.lfn:
            stmt = stmt.where(File.lfn == selector.lfn)
        return stmt.order_by(File.id)

    def get_records(self, selector: Selector) -> List[CatalogEntry]:
        """Entries matching every non-empty selector field."""
        with self.get_session() as session:
            rows = session.execute(self._records_query(selector)).all()
            return [
                CatalogEntry(
                    lfn=f.lfn,
                    pfn=f.pfn,
                    dataset=dataset,
                    block=block,
                    size=f.size or 0,
                    digest=f.hash or "",
                    transfer_time=f.transferTime or 0,
                    timestamp=f.timestamp or 0,
                )
                for f, dataset, block in rows
            ]

    def get_lfns(self) -> List[str]:
        with self.get_session() as session:
            return list(session.execute(select(File.lfn).distinct().order_by(File.lfn)).scalars())

    def get_transfers(self, t0: int, t1: int) -> List[TransferRecord]:
        """Byte counts and durations of entries recorded in [t0, t1]."""
        with self.get_session() as session:
            rows = session.execute(
                select(File.size, File.transferTime)
                .where(File.timestamp >= t0, File.timestamp <= t1)
                .order_by(File.timestamp)
            ).all()
            return [TransferRecord(size or 0, ttime or 0) for size, ttime in rows]

    def get_snapshot(self) -> Dict[str, List[str]]:
        """Every table as csv rows, keyed by table name."""
        snapshot = {}
        with self.get_session() as session:
            for name, columns in SNAPSHOT_COLUMNS.items():
                table = Base.metadata.tables[name]
                rows = session.execute(
                    select(*[table.c[col] for col in columns]).order_by(table.c.id)
                ).all()
                snapshot[name] = [csv_line(row) for row in rows]
        return snapshot

    def dump(self) -> Optional[str]:
        """SQL text dump; only sqlite can produce one."""
        if self.dialect != "sqlite":
            logger.warning(f"Dump is not supported for {self.dialect} catalogs")
            return None
        raw = self.engine.raw_connection()
        try:
            return "\n".join(raw.driver_connection.iterdump())
        finally:
            raw.close()


def csv_line(values) -> str:
    buf = io.StringIO()
    csv.writer(buf, lineterminator="").writerow(values)
    return buf.getvalue()
