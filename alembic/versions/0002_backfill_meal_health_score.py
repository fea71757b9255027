"""backfill_meal_health_score

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-18

Gives every meal without a health score the estimated score from its stored
totals, then makes meals.health_score NOT NULL. Reads never fill in scores.
"""
from alembic import op
import sqlalchemy as sa

from app.schemas import Nutrition
from app.services.health_score import estimate_health_score

revision = '0002'
down_revision = '0001'
branch_labels = None
depends_on = None

meals = sa.table(
    'meals',
    sa.column('id', sa.String),
    sa.column('total_calories', sa.Integer),
    sa.column('total_protein', sa.Numeric),
    sa.column('total_carbs', sa.Numeric),
    sa.column('total_fat', sa.Numeric),
    sa.column('total_fiber', sa.Numeric),
    sa.column('health_score', sa.Float),
)


def upgrade() -> None:
    bind = op.get_bind()
    rows = bind.execute(
        sa.select(
            meals.c.id,
            meals.c.total_calories,
            meals.c.total_protein,
            meals.c.total_carbs,
            meals.c.total_fat,
            meals.c.total_fiber,
        ).where(meals.c.health_score.is_(None))
    ).fetchall()

    for row in rows:
        totals = Nutrition(
            calories=row.total_calories or 0,
            protein=float(row.total_protein or 0),
            carbs=float(row.total_carbs or 0),
            fat=float(row.total_fat or 0),
            fiber=float(row.total_fiber) if row.total_fiber is not None else None,
        )
        bind.execute(
            meals.update()
            .where(meals.c.id == row.id)
            .values(health_score=estimate_health_score(totals))
        )

    with op.batch_alter_table('meals') as batch_op:
        batch_op.alter_column('health_score', existing_type=sa.Float(), nullable=False)


def downgrade() -> None:
    with op.batch_alter_table('meals') as batch_op:
        batch_op.alter_column('health_score', existing_type=sa.Float(), nullable=True)
