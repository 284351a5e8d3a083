from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# Use JSONB on Postgres while keeping SQLite usable for local tests.
JSONType = JSON().with_variant(JSONB(), "postgresql")
# SQLite only autoincrements INTEGER PRIMARY KEY columns.
SequenceId = BigInteger().with_variant(Integer(), "sqlite")


def _utc_now() -> datetime:
    # Application-side timestamps keep microsecond ordering on every backend.
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    email: Mapped[str | None] = mapped_column(String, nullable=True)
    # Gate access for disabled users without deleting historical keys.
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class ApiKey(Base):
    __tablename__ = "api_keys"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    user_id: Mapped[str] = mapped_column(String, ForeignKey("users.id"), index=True)
    # Keep a short prefix for operator display without exposing the secret.
    key_prefix: Mapped[str] = mapped_column(String)
    # Store only the hashed key to avoid plaintext credentials at rest.
    key_hash: Mapped[str] = mapped_column(String, unique=True, index=True)
    name: Mapped[str | None] = mapped_column(String, nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Project(Base):
    __tablename__ = "projects"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now)


class ProjectMember(Base):
    __tablename__ = "project_members"
    __table_args__ = (
        UniqueConstraint("project_id", "user_id", name="uq_project_members_project_user"),
    )

    id: Mapped[int] = mapped_column(SequenceId, primary_key=True, autoincrement=True)
    project_id: Mapped[str] = mapped_column(String, ForeignKey("projects.id"), index=True)
    user_id: Mapped[str] = mapped_column(String, ForeignKey("users.id"), index=True)
    # Persist RBAC role as a simple string for fast lookup and migration safety.
    role: Mapped[str] = mapped_column(String)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now)


class IssuerNode(Base):
    __tablename__ = "issuer_nodes"
    __table_args__ = (
        Index("ix_issuer_nodes_project_created", "project_id", "created_at", "id"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True)
    project_id: Mapped[str] = mapped_column(String, ForeignKey("projects.id"), index=True)
    label: Mapped[str] = mapped_column(String)
    sigs_required: Mapped[int] = mapped_column(Integer)
    # Node-local counter mixed into asset ids so repeated definitions stay distinct.
    next_asset_index: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    archived: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now)

    keys: Mapped[list["IssuerNodeKey"]] = relationship(
        order_by="IssuerNodeKey.position",
        lazy="selectin",
        cascade="all, delete-orphan",
    )


class IssuerNodeKey(Base):
    __tablename__ = "issuer_node_keys"
    __table_args__ = (
        UniqueConstraint("issuer_node_id", "position", name="uq_issuer_node_keys_position"),
    )

    id: Mapped[int] = mapped_column(SequenceId, primary_key=True, autoincrement=True)
    issuer_node_id: Mapped[str] = mapped_column(String, ForeignKey("issuer_nodes.id"), index=True)
    # Preserve KeySpec order; signature policies are positional.
    position: Mapped[int] = mapped_column(Integer)
    # "external" for caller-supplied keys, "generated" for keys minted at creation.
    source: Mapped[str] = mapped_column(String)
    public_key: Mapped[str] = mapped_column(String)


class Asset(Base):
    __tablename__ = "assets"
    __table_args__ = (
        Index("ix_assets_node_created", "issuer_node_id", "created_at", "id"),
    )

    # Content-derived hash (hex).
    id: Mapped[str] = mapped_column(String, primary_key=True)
    issuer_node_id: Mapped[str] = mapped_column(String, ForeignKey("issuer_nodes.id"), index=True)
    label: Mapped[str] = mapped_column(String)
    definition: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    # Maintained by external issuance only; never written by this service.
    circulation_total: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    archived: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now)


class ActivityRecord(Base):
    __tablename__ = "activity"
    __table_args__ = (
        Index("ix_activity_node_id", "issuer_node_id", "id"),
        Index("ix_activity_asset_id", "asset_id", "id"),
    )

    # Monotonic sequence; this is the ordering key for activity pages.
    id: Mapped[int] = mapped_column(SequenceId, primary_key=True, autoincrement=True)
    issuer_node_id: Mapped[str] = mapped_column(String, ForeignKey("issuer_nodes.id"))
    asset_id: Mapped[str | None] = mapped_column(String, ForeignKey("assets.id"), nullable=True)
    kind: Mapped[str] = mapped_column(String)
    data: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now)


class TransactionRecord(Base):
    __tablename__ = "transactions"
    __table_args__ = (
        Index("ix_transactions_node_id", "issuer_node_id", "id"),
        Index("ix_transactions_asset_id", "asset_id", "id"),
    )

    id: Mapped[int] = mapped_column(SequenceId, primary_key=True, autoincrement=True)
    issuer_node_id: Mapped[str] = mapped_column(String, ForeignKey("issuer_nodes.id"))
    asset_id: Mapped[str | None] = mapped_column(String, ForeignKey("assets.id"), nullable=True)
    tx_hash: Mapped[str] = mapped_column(String, index=True)
    data: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now)
