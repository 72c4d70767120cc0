"""Initial ApplyTrack schema.

Creates every table from the model metadata as it stood at this revision.
Later schema changes get explicit op.* migrations on top of this baseline.

Revision ID: 001
Revises:
Create Date: 2026-10-17 00:00:00.000000
"""
from typing import Sequence, Union

from alembic import op

from applytrack.database import Base
from applytrack import models  # noqa: F401
from applytrack.auth import models as auth_models  # noqa: F401

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    Base.metadata.create_all(bind=op.get_bind(), checkfirst=True)


def downgrade() -> None:
    Base.metadata.drop_all(bind=op.get_bind())
