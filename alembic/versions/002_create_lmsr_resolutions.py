"""002: create lmsr_resolutions

Revision ID: 002
Revises: 001
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # One row per market: a challenged proposal is overwritten by its replacement.
    op.execute("""
        CREATE TABLE lmsr_resolutions (
            market_id               VARCHAR(64)     PRIMARY KEY REFERENCES lmsr_markets(id),
            yes_wins                BOOLEAN         NOT NULL,
            proposer                VARCHAR(128)    NOT NULL,
            proposed_at             TIMESTAMPTZ     NOT NULL,
            challenge_period_end    TIMESTAMPTZ     NOT NULL,
            resolution_data         TEXT            NOT NULL DEFAULT '',
            status                  VARCHAR(20)     NOT NULL DEFAULT 'PENDING',
            CONSTRAINT ck_lmsr_resolutions_status CHECK (
                status IN ('PENDING', 'FINALIZED', 'CHALLENGED')
            ),
            CONSTRAINT ck_lmsr_resolutions_window CHECK (challenge_period_end >= proposed_at)
        );
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS lmsr_resolutions;")
