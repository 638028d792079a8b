"""ORM models for players, gates, parties, runs, the outbox and relic inventory.

Tables are created by the Alembic revision in alembic/versions. JSON columns
hold small embedded lists (gate occupancy, run rewards); code always assigns a
fresh list rather than mutating in place so the change is flushed.
"""

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
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from smp.db.base import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Players
# ---------------------------------------------------------------------------


class Player(Base):
    """Player profile keyed by lowercase wallet address."""

    __tablename__ = "players"
    __table_args__ = (
        Index("ix_players_xp", "xp"),
        Index("ix_players_level", "level"),
        Index("ix_players_rank", "rank"),
    )

    wallet: Mapped[str] = mapped_column(String(42), primary_key=True)
    display_name: Mapped[str] = mapped_column(String(24), nullable=False)
    display_name_normalized: Mapped[str] = mapped_column(String(24), unique=True, nullable=False)
    avatar_id: Mapped[str] = mapped_column(String(64), nullable=False)
    image_url: Mapped[str] = mapped_column(Text, nullable=False)
    rank: Mapped[str] = mapped_column(String(1), nullable=False, default="E", server_default="E")
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    xp: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
    sbt_token_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now()
    )


# ---------------------------------------------------------------------------
# Gates
# ---------------------------------------------------------------------------


class Gate(Base):
    """Dungeon gate. ``occupancy`` is a list of {partyId, current, max}."""

    __tablename__ = "gates"
    __table_args__ = (Index("ix_gates_rank_active", "rank", "is_active"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    rank: Mapped[str] = mapped_column(String(1), nullable=False)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    thumb_url: Mapped[str] = mapped_column(Text, nullable=False, default="")
    map_code: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    occupancy: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now()
    )


# ---------------------------------------------------------------------------
# Parties
# ---------------------------------------------------------------------------


class Party(Base):
    """A transient group of players queued for one gate."""

    __tablename__ = "parties"
    __table_args__ = (
        Index("ix_parties_gate_state", "gate_id", "state"),
        Index("ix_parties_leader", "leader"),
        Index("ix_parties_state_created", "state", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    gate_id: Mapped[str] = mapped_column(String(64), ForeignKey("gates.id"), nullable=False)
    leader: Mapped[str] = mapped_column(String(42), nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    state: Mapped[str] = mapped_column(String(16), nullable=False, default="waiting", server_default="waiting")
    run_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now()
    )

    members: Mapped[list[PartyMember]] = relationship(
        "PartyMember",
        back_populates="party",
        cascade="all, delete-orphan",
        order_by="PartyMember.id",
        lazy="selectin",
    )

    @property
    def wallets(self) -> list[str]:
        return [m.wallet for m in self.members]

    def member(self, wallet: str) -> PartyMember | None:
        for m in self.members:
            if m.wallet == wallet:
                return m
        return None


class PartyMember(Base):
    """Party membership; row order is join order."""

    __tablename__ = "party_members"
    __table_args__ = (UniqueConstraint("party_id", "wallet", name="uq_party_members_party_wallet"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    party_id: Mapped[str] = mapped_column(String(64), ForeignKey("parties.id", ondelete="CASCADE"), nullable=False)
    wallet: Mapped[str] = mapped_column(String(42), nullable=False, index=True)
    display_name: Mapped[str] = mapped_column(String(24), nullable=False)
    avatar_id: Mapped[str] = mapped_column(String(64), nullable=False)
    is_ready: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    is_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    equipped_relic_ids: Mapped[list[int]] = mapped_column(JSON, nullable=False, default=list)
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    party: Mapped[Party] = relationship("Party", back_populates="members")


# ---------------------------------------------------------------------------
# Runs
# ---------------------------------------------------------------------------


class Run(Base):
    """One play session of a party against a boss. Terminal once ``ended_at`` is set."""

    __tablename__ = "runs"
    __table_args__ = (
        Index("ix_runs_party", "party_id"),
        Index("ix_runs_ended_at", "ended_at"),
        Index("ix_runs_boss", "boss_id"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    party_id: Mapped[str] = mapped_column(String(96), nullable=False)
    gate_id: Mapped[str] = mapped_column(String(64), nullable=False)
    boss_id: Mapped[str] = mapped_column(String(96), nullable=False)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    ended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    tx_hash: Mapped[str | None] = mapped_column(String(80), nullable=True)
    minted_relics: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    xp_awards: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    rank_ups: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)

    participants: Mapped[list[RunParticipant]] = relationship(
        "RunParticipant",
        back_populates="run",
        cascade="all, delete-orphan",
        order_by="RunParticipant.id",
        lazy="selectin",
    )

    @property
    def is_finished(self) -> bool:
        return self.ended_at is not None


class RunParticipant(Base):
    """Per-player contribution inside a run."""

    __tablename__ = "run_participants"
    __table_args__ = (UniqueConstraint("run_id", "wallet", name="uq_run_participants_run_wallet"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    run_id: Mapped[str] = mapped_column(String(64), ForeignKey("runs.id", ondelete="CASCADE"), nullable=False)
    wallet: Mapped[str] = mapped_column(String(42), nullable=False, index=True)
    display_name: Mapped[str] = mapped_column(String(24), nullable=False)
    avatar_id: Mapped[str] = mapped_column(String(64), nullable=False)
    equipped_relic_ids: Mapped[list[int]] = mapped_column(JSON, nullable=False, default=list)
    damage: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
    normal_kills: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    xp_gained: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")

    run: Mapped[Run] = relationship("Run", back_populates="participants")


# ---------------------------------------------------------------------------
# Idempotency outbox
# ---------------------------------------------------------------------------


class OutboxEntry(Base):
    """Stored response of a completed finish call, keyed by (run_id, key)."""

    __tablename__ = "outbox"
    __table_args__ = (UniqueConstraint("run_id", "key", name="uq_outbox_run_key"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    run_id: Mapped[str] = mapped_column(String(64), nullable=False)
    key: Mapped[str] = mapped_column(String(255), nullable=False)
    response: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    tx_hash: Mapped[str | None] = mapped_column(String(80), nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------


class InventoryItem(Base):
    """A relic held by a wallet, reconciled against on-chain ownership."""

    __tablename__ = "inventory"
    __table_args__ = (
        UniqueConstraint("wallet", "token_id", name="uq_inventory_wallet_token"),
        Index("ix_inventory_wallet_equipped", "wallet", "equipped"),
        Index("ix_inventory_relic_type", "relic_type"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    wallet: Mapped[str] = mapped_column(String(42), nullable=False)
    token_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    relic_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    relic_type: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    benefits: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    affixes: Mapped[dict[str, int]] = mapped_column(JSON, nullable=False, default=dict)
    cid: Mapped[str] = mapped_column(String(128), nullable=False)
    equipped: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    tx_hash: Mapped[str | None] = mapped_column(String(80), nullable=True)
    minted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_synced: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    sync_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now()
    )
