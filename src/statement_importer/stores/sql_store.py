"""SQLAlchemy-backed rule store.

One row per ``(workspace_id, merchant_key)``, enforced by a unique constraint
on top of the lock-guarded lookup-then-write in :meth:`SqlRuleStore.upsert`.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import DateTime, Integer, String, Text, UniqueConstraint, create_engine, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from statement_importer.logger import get_logger
from statement_importer.models import Category, ImportMerchantRule

from .base import RuleStore, clean_name, refreshed_timestamp

logger = get_logger(__name__)


class Base(DeclarativeBase):
    pass


class MerchantRuleRecord(Base):
    __tablename__ = "import_merchant_rules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    workspace_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    merchant_key: Mapped[str] = mapped_column(String, nullable=False)
    preferred_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Category entities live elsewhere; keep the resolved reference only.
    preferred_category_id: Mapped[str | None] = mapped_column(String, nullable=True)
    preferred_category_name: Mapped[str | None] = mapped_column(String, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("workspace_id", "merchant_key", name="uq_import_rule_workspace_key"),
    )

    def to_rule(self) -> ImportMerchantRule:
        category = None
        if self.preferred_category_name is not None:
            category = Category(name=self.preferred_category_name, id=self.preferred_category_id)
        updated_at = self.updated_at
        # SQLite hands back naive datetimes even for timezone=True columns
        if updated_at.tzinfo is None:
            updated_at = updated_at.replace(tzinfo=timezone.utc)
        return ImportMerchantRule(
            merchant_key=self.merchant_key,
            workspace_id=self.workspace_id,
            preferred_name=self.preferred_name,
            preferred_category=category,
            updated_at=updated_at,
        )


class SqlRuleStore(RuleStore):
    def __init__(self, database_url: str | None = None, *, engine: Engine | None = None):
        if engine is None:
            if not database_url:
                raise RuntimeError("DATABASE_URL is not set; cannot initialize the SQL rule store")
            engine = create_engine(database_url, pool_pre_ping=True)
        self.engine = engine
        self._session_maker = sessionmaker(bind=engine, expire_on_commit=False, class_=Session)
        self._lock = threading.Lock()
        Base.metadata.create_all(bind=engine)

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Provide a transactional scope around a series of operations."""
        session = self._session_maker()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def fetch_all(self, workspace_id: str) -> dict[str, ImportMerchantRule]:
        stmt = select(MerchantRuleRecord).where(MerchantRuleRecord.workspace_id == workspace_id)
        with self.session_scope() as session:
            records = session.execute(stmt).scalars().all()
            return {
                record.merchant_key: record.to_rule()
                for record in records
                if record.merchant_key and record.merchant_key.strip()
            }

    def _find(self, session: Session, workspace_id: str, key: str) -> MerchantRuleRecord | None:
        stmt = select(MerchantRuleRecord).where(
            MerchantRuleRecord.workspace_id == workspace_id,
            MerchantRuleRecord.merchant_key == key,
        )
        return session.execute(stmt).scalar_one_or_none()

    def get(self, workspace_id: str, merchant_key: str) -> ImportMerchantRule | None:
        key = merchant_key.strip()
        if not key:
            return None
        with self.session_scope() as session:
            record = self._find(session, workspace_id, key)
            return record.to_rule() if record else None

    def upsert(
        self,
        merchant_key: str,
        preferred_name: str | None,
        preferred_category: Category | None,
        workspace_id: str,
    ) -> ImportMerchantRule | None:
        key = merchant_key.strip()
        if not key:
            logger.debug("[RULES] Ignoring upsert with blank merchant key.")
            return None

        with self._lock, self.session_scope() as session:
            record = self._find(session, workspace_id, key)
            created = record is None
            if record is None:
                record = MerchantRuleRecord(workspace_id=workspace_id, merchant_key=key)
                session.add(record)
                previous = None
            else:
                previous = record.updated_at
            record.preferred_name = clean_name(preferred_name)
            record.preferred_category_id = preferred_category.id if preferred_category else None
            record.preferred_category_name = preferred_category.name if preferred_category else None
            record.updated_at = refreshed_timestamp(previous)
            session.flush()
            rule = record.to_rule()

        logger.debug(
            "[RULES] %s rule '%s' in workspace %s",
            "Created" if created else "Updated",
            key,
            workspace_id,
        )
        return rule
