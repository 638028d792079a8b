"""Initial schema: players, gates, parties, runs, outbox, inventory.

Revision ID: 001_initial_schema
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Players ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS players (
            wallet VARCHAR(42) PRIMARY KEY,
            display_name VARCHAR(24) NOT NULL,
            display_name_normalized VARCHAR(24) NOT NULL,
            avatar_id VARCHAR(64) NOT NULL,
            image_url TEXT NOT NULL,
            rank VARCHAR(1) NOT NULL DEFAULT 'E',
            level INTEGER NOT NULL DEFAULT 1,
            xp BIGINT NOT NULL DEFAULT 0,
            sbt_token_id BIGINT,
            is_admin BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_players_display_name_normalized UNIQUE (display_name_normalized)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_players_xp ON players(xp)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_players_level ON players(level)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_players_rank ON players(rank)")

    # --- Gates ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS gates (
            id VARCHAR(64) PRIMARY KEY,
            rank VARCHAR(1) NOT NULL,
            name VARCHAR(128) NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            thumb_url TEXT NOT NULL DEFAULT '',
            map_code VARCHAR(64) NOT NULL DEFAULT '',
            capacity INTEGER NOT NULL,
            is_active BOOLEAN NOT NULL DEFAULT true,
            occupancy JSONB NOT NULL DEFAULT '[]',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_gates_rank_active ON gates(rank, is_active)")

    # --- Parties ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS parties (
            id VARCHAR(64) PRIMARY KEY,
            gate_id VARCHAR(64) NOT NULL REFERENCES gates(id),
            leader VARCHAR(42) NOT NULL,
            capacity INTEGER NOT NULL,
            state VARCHAR(16) NOT NULL DEFAULT 'waiting',
            run_id VARCHAR(64),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_parties_gate_state ON parties(gate_id, state)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_parties_leader ON parties(leader)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_parties_state_created ON parties(state, created_at)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS party_members (
            id SERIAL PRIMARY KEY,
            party_id VARCHAR(64) NOT NULL REFERENCES parties(id) ON DELETE CASCADE,
            wallet VARCHAR(42) NOT NULL,
            display_name VARCHAR(24) NOT NULL,
            avatar_id VARCHAR(64) NOT NULL,
            is_ready BOOLEAN NOT NULL DEFAULT false,
            is_locked BOOLEAN NOT NULL DEFAULT false,
            equipped_relic_ids JSONB NOT NULL DEFAULT '[]',
            joined_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_party_members_party_wallet UNIQUE (party_id, wallet)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_party_members_wallet ON party_members(wallet)")

    # --- Runs ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS runs (
            id VARCHAR(64) PRIMARY KEY,
            party_id VARCHAR(96) NOT NULL,
            gate_id VARCHAR(64) NOT NULL,
            boss_id VARCHAR(96) NOT NULL,
            started_at TIMESTAMPTZ NOT NULL,
            ended_at TIMESTAMPTZ,
            tx_hash VARCHAR(80),
            minted_relics JSONB NOT NULL DEFAULT '[]',
            xp_awards JSONB NOT NULL DEFAULT '[]',
            rank_ups JSONB NOT NULL DEFAULT '[]'
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_runs_party ON runs(party_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_runs_ended_at ON runs(ended_at)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_runs_boss ON runs(boss_id)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS run_participants (
            id SERIAL PRIMARY KEY,
            run_id VARCHAR(64) NOT NULL REFERENCES runs(id) ON DELETE CASCADE,
            wallet VARCHAR(42) NOT NULL,
            display_name VARCHAR(24) NOT NULL,
            avatar_id VARCHAR(64) NOT NULL,
            equipped_relic_ids JSONB NOT NULL DEFAULT '[]',
            damage BIGINT NOT NULL DEFAULT 0,
            normal_kills INTEGER NOT NULL DEFAULT 0,
            xp_gained BIGINT NOT NULL DEFAULT 0,
            CONSTRAINT uq_run_participants_run_wallet UNIQUE (run_id, wallet)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_run_participants_wallet ON run_participants(wallet)")

    # --- Idempotency outbox ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS outbox (
            id SERIAL PRIMARY KEY,
            run_id VARCHAR(64) NOT NULL,
            key VARCHAR(255) NOT NULL,
            response JSONB NOT NULL,
            tx_hash VARCHAR(80),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_outbox_run_key UNIQUE (run_id, key)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_outbox_tx_hash ON outbox(tx_hash)")

    # --- Inventory ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS inventory (
            id SERIAL PRIMARY KEY,
            wallet VARCHAR(42) NOT NULL,
            token_id BIGINT NOT NULL,
            relic_id VARCHAR(64),
            relic_type VARCHAR(64) NOT NULL,
            name VARCHAR(128),
            image_url TEXT,
            description TEXT,
            benefits JSONB NOT NULL DEFAULT '[]',
            affixes JSONB NOT NULL DEFAULT '{}',
            cid VARCHAR(128) NOT NULL,
            equipped BOOLEAN NOT NULL DEFAULT false,
            tx_hash VARCHAR(80),
            minted_at TIMESTAMPTZ,
            last_synced TIMESTAMPTZ,
            sync_attempts INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_inventory_wallet_token UNIQUE (wallet, token_id)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_inventory_wallet_equipped ON inventory(wallet, equipped)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_inventory_relic_type ON inventory(relic_type)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_inventory_relic_id ON inventory(relic_id)")


def downgrade() -> None:
    for table in ["inventory", "outbox", "run_participants", "runs", "party_members", "parties", "gates", "players"]:
        op.execute(f"DROP TABLE IF EXISTS {table} CASCADE")  # noqa: S608
