"""001: create lmsr_markets, lmsr_trades, lmsr_positions

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Fixed-point amounts are 1e18-scaled: NUMERIC(78, 0) holds any uint256.
    op.execute("""
        CREATE TABLE lmsr_markets (
            id                  VARCHAR(64)     PRIMARY KEY,
            q_yes               NUMERIC(78, 0)  NOT NULL DEFAULT 0,
            q_no                NUMERIC(78, 0)  NOT NULL DEFAULT 0,
            total_volume        NUMERIC(78, 0)  NOT NULL DEFAULT 0,
            tx_count            BIGINT          NOT NULL DEFAULT 0,
            b                   NUMERIC(78, 0)  NOT NULL,
            fee_rate_bps        SMALLINT        NOT NULL DEFAULT 50,
            fees_collected      NUMERIC(78, 0)  NOT NULL DEFAULT 0,
            status              VARCHAR(20)     NOT NULL DEFAULT 'ACTIVE',
            resolution          VARCHAR(10),
            sequence            BIGINT          NOT NULL DEFAULT 0,
            settled_sequence    BIGINT          NOT NULL DEFAULT 0,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_lmsr_markets_q_gte_0   CHECK (q_yes >= 0 AND q_no >= 0),
            CONSTRAINT ck_lmsr_markets_b_gt_0    CHECK (b > 0),
            CONSTRAINT ck_lmsr_markets_fee       CHECK (fee_rate_bps >= 0 AND fee_rate_bps <= 10000),
            CONSTRAINT ck_lmsr_markets_status    CHECK (status IN ('ACTIVE', 'PAUSED', 'RESOLVED')),
            CONSTRAINT ck_lmsr_markets_resolution CHECK (
                resolution IS NULL OR resolution IN ('YES', 'NO')
            ),
            CONSTRAINT ck_lmsr_markets_settled   CHECK (settled_sequence <= sequence)
        );
    """)
    op.execute("""
        CREATE TABLE lmsr_trades (
            trade_id        VARCHAR(96)     PRIMARY KEY,
            market_id       VARCHAR(64)     NOT NULL REFERENCES lmsr_markets(id),
            trader          VARCHAR(128)    NOT NULL,
            outcome         VARCHAR(3)      NOT NULL,
            amount          NUMERIC(78, 0)  NOT NULL,
            fee             NUMERIC(78, 0)  NOT NULL,
            shares          NUMERIC(78, 0)  NOT NULL,
            avg_price       NUMERIC(78, 0)  NOT NULL,
            new_price       NUMERIC(78, 0)  NOT NULL,
            sequence        BIGINT          NOT NULL,
            nonce           BIGINT          NOT NULL,
            executed_at     TIMESTAMPTZ     NOT NULL,
            CONSTRAINT uq_lmsr_trades_market_seq UNIQUE (market_id, sequence),
            CONSTRAINT ck_lmsr_trades_outcome    CHECK (outcome IN ('YES', 'NO'))
        );
    """)
    op.execute("""
        CREATE TABLE lmsr_positions (
            market_id       VARCHAR(64)     NOT NULL REFERENCES lmsr_markets(id),
            trader          VARCHAR(128)    NOT NULL,
            yes_shares      NUMERIC(78, 0)  NOT NULL DEFAULT 0,
            no_shares       NUMERIC(78, 0)  NOT NULL DEFAULT 0,
            total_invested  NUMERIC(78, 0)  NOT NULL DEFAULT 0,
            last_nonce      BIGINT          NOT NULL DEFAULT -1,
            last_activity   TIMESTAMPTZ,
            PRIMARY KEY (market_id, trader)
        );
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS lmsr_positions;")
    op.execute("DROP TABLE IF EXISTS lmsr_trades;")
    op.execute("DROP TABLE IF EXISTS lmsr_markets;")
