"""Bring deployed zkpass/selfcheck tables up to the ORM schema.

Deployed databases were created from the original DDL:
- zkpass(address text NOT NULL, identifier text NOT NULL, provider text NOT NULL)
- selfcheck(attestationId text, proof text)

Adds:
- zkpass.id / selfcheck.id (integer primary key)
- zkpass.created_at / selfcheck.created_at (existing rows get the migration time)
- ix_zkpass_identifier_provider, ix_selfcheck_attestationid
Relaxes:
- zkpass.address NOT NULL (zk-passport bindings may have no wallet)

This migration is idempotent and is a no-op on a fresh database, where
create_all builds the tables.
"""

import logging

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine

from app.db.models import AuditedProofSubmission, VerificationRecord

log = logging.getLogger(__name__)

# table -> legacy columns copied into the rebuilt table
_LEGACY_COLUMNS = {
    "zkpass": ("address", "identifier", "provider"),
    "selfcheck": ("attestationid", "proof"),
}

_MODELS = {
    "zkpass": VerificationRecord,
    "selfcheck": AuditedProofSubmission,
}


def _get_sqlite_columns(conn: Connection, table_name: str) -> set[str]:
    """Get lower-cased column names for a SQLite table."""
    result = conn.execute(text(f"PRAGMA table_info({table_name})"))
    return {row[1].lower() for row in result}


def _sqlite_table_exists(conn: Connection, table_name: str) -> bool:
    result = conn.execute(
        text("SELECT name FROM sqlite_master WHERE type='table' AND name=:name"),
        {"name": table_name},
    )
    return result.fetchone() is not None


def _rebuild_sqlite_table(conn: Connection, table_name: str) -> None:
    """Recreate a legacy table with the ORM schema and copy its rows.

    SQLite cannot add a primary key column with ALTER TABLE.
    """
    legacy = f"{table_name}_legacy"
    columns = ", ".join(_LEGACY_COLUMNS[table_name])

    conn.execute(text(f"ALTER TABLE {table_name} RENAME TO {legacy}"))
    _MODELS[table_name].__table__.create(conn)
    copied = conn.execute(text(
        f"INSERT INTO {table_name} ({columns}, created_at) "
        f"SELECT {columns}, CURRENT_TIMESTAMP FROM {legacy}"
    )).rowcount
    conn.execute(text(f"DROP TABLE {legacy}"))
    log.info(f"Rebuilt {table_name} with id/created_at ({copied} rows copied)")


def _run_sqlite(engine: Engine) -> None:
    """Run migration for SQLite (existing databases only)."""
    with engine.connect() as conn:
        for table_name in _LEGACY_COLUMNS:
            if not _sqlite_table_exists(conn, table_name):
                log.debug(f"{table_name} migration skipped: table not yet created")
                continue
            cols = _get_sqlite_columns(conn, table_name)
            if "id" in cols and "created_at" in cols:
                continue
            _rebuild_sqlite_table(conn, table_name)
        conn.commit()
    log.info("Legacy schema SQLite migration complete")


def _run_postgresql(engine: Engine) -> None:
    """Run migration for PostgreSQL."""
    migration_sql = text("""
        DO $$
        BEGIN
            IF EXISTS (
                SELECT 1 FROM information_schema.tables WHERE table_name = 'zkpass'
            ) THEN
                IF NOT EXISTS (
                    SELECT 1 FROM information_schema.columns
                    WHERE table_name = 'zkpass' AND column_name = 'id'
                ) THEN
                    ALTER TABLE zkpass ADD COLUMN id SERIAL PRIMARY KEY;
                END IF;
                IF NOT EXISTS (
                    SELECT 1 FROM information_schema.columns
                    WHERE table_name = 'zkpass' AND column_name = 'created_at'
                ) THEN
                    ALTER TABLE zkpass
                    ADD COLUMN created_at TIMESTAMP NOT NULL DEFAULT now();
                END IF;
                ALTER TABLE zkpass ALTER COLUMN address DROP NOT NULL;
                CREATE INDEX IF NOT EXISTS ix_zkpass_identifier_provider
                    ON zkpass (identifier, provider);
            END IF;
        END $$;

        DO $$
        BEGIN
            IF EXISTS (
                SELECT 1 FROM information_schema.tables WHERE table_name = 'selfcheck'
            ) THEN
                IF NOT EXISTS (
                    SELECT 1 FROM information_schema.columns
                    WHERE table_name = 'selfcheck' AND column_name = 'id'
                ) THEN
                    ALTER TABLE selfcheck ADD COLUMN id SERIAL PRIMARY KEY;
                END IF;
                IF NOT EXISTS (
                    SELECT 1 FROM information_schema.columns
                    WHERE table_name = 'selfcheck' AND column_name = 'created_at'
                ) THEN
                    ALTER TABLE selfcheck
                    ADD COLUMN created_at TIMESTAMP NOT NULL DEFAULT now();
                END IF;
                CREATE INDEX IF NOT EXISTS ix_selfcheck_attestationid
                    ON selfcheck (attestationid);
            END IF;
        END $$;
    """)
    with engine.connect() as conn:
        conn.execute(migration_sql)
        conn.commit()
    log.info("Legacy schema PostgreSQL migration complete")


def run_migrations(engine: Engine) -> None:
    """Upgrade legacy zkpass/selfcheck tables in place.

    Detects database dialect and runs the appropriate migration.
    Safe to call multiple times (idempotent).

    Args:
        engine: SQLAlchemy engine instance
    """
    backend = engine.url.get_backend_name()
    log.info(f"Running legacy schema migration (dialect: {backend})")

    if backend == "postgresql":
        _run_postgresql(engine)
    elif backend == "sqlite":
        _run_sqlite(engine)
    else:
        log.warning(f"Legacy schema migration: unsupported dialect {backend}, skipping")
