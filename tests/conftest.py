"""
Shared test fixtures.
"""

import enum
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy import JSON, DateTime, ForeignKey, String, Text, create_engine, event
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, relationship

from nabudb.adapters.sqlalchemy import SQLAlchemyIntrospector, SQLAlchemyStorageClient
from nabudb.client import PolicyClient
from nabudb.core.context import ActorContext, StaticActorResolver
from nabudb.policy.models import PolicyConfig
from nabudb.utils.testing import RecordingStorageClient


def _uuid() -> str:
    return str(uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


# === Test Models ===


class Base(DeclarativeBase):
    pass


class NoteStatus(str, enum.Enum):
    draft = "draft"
    published = "published"


class Tenant(Base):
    __tablename__ = "tenants"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_uuid)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_uuid)
    tenant_id: Mapped[str | None] = mapped_column(ForeignKey("tenants.id"), nullable=True)
    email: Mapped[str] = mapped_column(String(255))
    created_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    tenant: Mapped[Tenant | None] = relationship("Tenant")


class Folder(Base):
    __tablename__ = "folders"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_uuid)
    tenant_id: Mapped[str | None] = mapped_column(ForeignKey("tenants.id"), nullable=True)
    parent_id: Mapped[str | None] = mapped_column(ForeignKey("folders.id"), nullable=True)
    name: Mapped[str] = mapped_column(String(255))
    created_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    tenant: Mapped[Tenant | None] = relationship("Tenant")
    parent: Mapped["Folder | None"] = relationship(
        "Folder", remote_side="Folder.id", back_populates="children"
    )
    children: Mapped[list["Folder"]] = relationship("Folder", back_populates="parent")
    notes: Mapped[list["Note"]] = relationship("Note", back_populates="folder")


class Note(Base):
    __tablename__ = "notes"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_uuid)
    tenant_id: Mapped[str | None] = mapped_column(ForeignKey("tenants.id"), nullable=True)
    folder_id: Mapped[str | None] = mapped_column(ForeignKey("folders.id"), nullable=True)
    title: Mapped[str] = mapped_column(String(255))
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[NoteStatus] = mapped_column(
        SAEnum(NoteStatus, name="note_status"), default=NoteStatus.draft
    )
    created_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    tenant: Mapped[Tenant | None] = relationship("Tenant")
    folder: Mapped[Folder | None] = relationship("Folder", back_populates="notes")
    note_tags: Mapped[list["NoteTag"]] = relationship("NoteTag", back_populates="note")


class Tag(Base):
    __tablename__ = "tags"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_uuid)
    tenant_id: Mapped[str | None] = mapped_column(ForeignKey("tenants.id"), nullable=True)
    name: Mapped[str] = mapped_column(String(100))
    created_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    tenant: Mapped[Tenant | None] = relationship("Tenant")
    note_tags: Mapped[list["NoteTag"]] = relationship("NoteTag", back_populates="tag")


class NoteTag(Base):
    __tablename__ = "note_tags"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_uuid)
    tenant_id: Mapped[str | None] = mapped_column(ForeignKey("tenants.id"), nullable=True)
    note_id: Mapped[str] = mapped_column(ForeignKey("notes.id"))
    tag_id: Mapped[str] = mapped_column(ForeignKey("tags.id"))
    created_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    tenant: Mapped[Tenant | None] = relationship("Tenant")
    note: Mapped[Note] = relationship("Note", back_populates="note_tags")
    tag: Mapped[Tag] = relationship("Tag", back_populates="note_tags")


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_uuid)
    entity_type: Mapped[str] = mapped_column(String(100))
    entity_id: Mapped[str] = mapped_column(String(100))
    action: Mapped[str] = mapped_column(String(50))
    event_status: Mapped[str] = mapped_column(String(50), default="success")
    old_data: Mapped[Any] = mapped_column(JSON, nullable=True)
    new_data: Mapped[Any] = mapped_column(JSON, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    tenant_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)


class WhatsAppMessage(Base):
    __tablename__ = "whatsapp_messages"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_uuid)
    tenant_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    body: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)


TEST_MODELS = [Tenant, User, Folder, Note, Tag, NoteTag, AuditLog, WhatsAppMessage]


# === Fixtures ===


@pytest.fixture
def engine():
    """Create an in-memory SQLite engine with working savepoints."""
    engine = create_engine("sqlite:///:memory:", echo=False)

    # pysqlite needs its own transaction handling disabled for SAVEPOINT
    @event.listens_for(engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def session(engine):
    """Create a database session."""
    with Session(engine) as session:
        yield session


@pytest.fixture
def schema():
    """Schema map introspected from the test models."""
    return SQLAlchemyIntrospector(TEST_MODELS).build_schema_map()


@pytest.fixture
def storage(session):
    """Raw storage client over the test session."""
    return SQLAlchemyStorageClient(session, TEST_MODELS)


@pytest_asyncio.fixture
async def seeded(storage):
    """Two tenants with one tag each."""
    for tenant_id in ("t1", "t2"):
        await storage.model("Tenant").create(data={"id": tenant_id, "name": tenant_id})
    await storage.model("Tag").create(data={"id": "g1", "name": "ideas", "tenant_id": "t1"})
    await storage.model("Tag").create(data={"id": "g2", "name": "todo", "tenant_id": "t2"})
    return storage


@pytest.fixture
def actor():
    """Regular user u1 of tenant t1."""
    return ActorContext(user_id="u1", tenant_id="t1")


@pytest.fixture
def other_actor():
    """Regular user u2 of tenant t2."""
    return ActorContext(user_id="u2", tenant_id="t2")


@pytest.fixture
def client(storage, schema, actor):
    """Policy client over the SQLAlchemy storage, acting as u1/t1."""
    return PolicyClient(storage, schema, resolver=StaticActorResolver(actor))


@pytest.fixture
def recorder():
    """Storage client that records calls instead of hitting a database."""
    return RecordingStorageClient()


@pytest.fixture
def recording_client(recorder, schema, actor):
    """Policy client over the recording storage, acting as u1/t1."""
    return PolicyClient(recorder, schema, resolver=StaticActorResolver(actor), config=PolicyConfig())


@pytest.fixture
def models():
    """The declarative test models."""
    return TEST_MODELS
