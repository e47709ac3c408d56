"""Tests for upgrading tables created from the deployed DDL."""

import pytest
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.attest.store import PROVIDER_SELF, PROVIDER_ZKPASS, VerificationStore
from app.db.migrations.legacy_schema import run_migrations
from app.db.models import Base

LEGACY_DDL = (
    """
    CREATE TABLE zkpass (
        address text NOT NULL,
        identifier text NOT NULL,
        provider text NOT NULL
    )
    """,
    """
    CREATE TABLE selfcheck (
        attestationId text,
        proof text
    )
    """,
)


@pytest.fixture
def legacy_engine():
    """In-memory SQLite database holding the deployed schema and one row per table."""
    eng = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    with eng.connect() as conn:
        for ddl in LEGACY_DDL:
            conn.execute(text(ddl))
        conn.execute(text(
            "INSERT INTO zkpass (address, identifier, provider) "
            "VALUES ('twilight1old', 'legacy-user', 'self')"
        ))
        conn.execute(text(
            "INSERT INTO selfcheck (attestationId, proof) VALUES ('legacy-user', '{\"a\"\\:1}')"
        ))
        conn.commit()
    yield eng
    eng.dispose()


def _upgrade(engine):
    run_migrations(engine)
    Base.metadata.create_all(bind=engine)


def test_writes_succeed_after_upgrade(legacy_engine):
    _upgrade(legacy_engine)
    db = sessionmaker(bind=legacy_engine)()
    try:
        store = VerificationStore(db)
        record = store.save_verification("u1", "twilight1abc", PROVIDER_SELF)
        no_wallet = store.save_verification("srv-uid", None, PROVIDER_ZKPASS)
        submission = store.save_audited_submission("u1", {"proof": 1})

        assert record.id is not None and record.created_at is not None
        assert no_wallet.address is None
        assert submission.id is not None
    finally:
        db.close()


def test_existing_rows_are_kept(legacy_engine):
    _upgrade(legacy_engine)
    db = sessionmaker(bind=legacy_engine)()
    try:
        store = VerificationStore(db)
        legacy = store.list_verifications(identifier="legacy-user")

        assert len(legacy) == 1
        assert legacy[0].address == "twilight1old"
        assert legacy[0].id is not None
        assert legacy[0].created_at is not None
        assert store.audited_submission_exists("legacy-user") is True
    finally:
        db.close()


def test_upgrade_adds_columns_and_indexes(legacy_engine):
    _upgrade(legacy_engine)
    inspector = inspect(legacy_engine)

    for table in ("zkpass", "selfcheck"):
        columns = {c["name"].lower() for c in inspector.get_columns(table)}
        assert {"id", "created_at"} <= columns
    index_names = {i["name"] for i in inspector.get_indexes("zkpass")}
    assert "ix_zkpass_identifier_provider" in index_names
    assert not any(name.endswith("_legacy") for name in inspector.get_table_names())


def test_migration_is_idempotent(legacy_engine):
    _upgrade(legacy_engine)
    _upgrade(legacy_engine)

    with legacy_engine.connect() as conn:
        count = conn.execute(text("SELECT COUNT(*) FROM zkpass")).scalar_one()
    assert count == 1


def test_fresh_database_is_untouched():
    eng = create_engine("sqlite://", poolclass=StaticPool, connect_args={"check_same_thread": False})
    run_migrations(eng)
    assert inspect(eng).get_table_names() == []
    eng.dispose()
