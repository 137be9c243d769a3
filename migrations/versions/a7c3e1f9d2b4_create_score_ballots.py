"""create score ballots

Revision ID: a7c3e1f9d2b4
Revises: 
Create Date: 2026-10-18 10:20:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "a7c3e1f9d2b4"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "score_ballots",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("voter_id", sa.String(length=255), nullable=False),
        sa.Column("candidate_id", sa.String(length=255), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False),
        sa.Column(
            "election_scope",
            sa.String(length=255),
            nullable=False,
            server_default="",
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "voter_id",
            "candidate_id",
            "election_scope",
            name="uq_score_ballots_voter_candidate_scope",
        ),
    )
    op.create_index(
        "ix_score_ballots_voter_id", "score_ballots", ["voter_id"], unique=False
    )
    op.create_index(
        "ix_score_ballots_election_scope",
        "score_ballots",
        ["election_scope"],
        unique=False,
    )


def downgrade():
    op.drop_index("ix_score_ballots_election_scope", table_name="score_ballots")
    op.drop_index("ix_score_ballots_voter_id", table_name="score_ballots")
    op.drop_table("score_ballots")
