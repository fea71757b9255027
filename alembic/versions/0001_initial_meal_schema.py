"""initial_meal_schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18

Creates:
- users and sessions tables for token authentication
- meals table (health_score nullable, matching rows logged before the
  score was computed at ingestion time; see 0002)
- detected_foods table, one row per food recognized in a meal
"""
from alembic import op
import sqlalchemy as sa

revision = '0001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
    )

    op.create_table(
        'sessions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('token', sa.String(64), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_sessions_token'), 'sessions', ['token'], unique=True)

    op.create_table(
        'meals',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('user_id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('meal_type', sa.String(20), nullable=False, server_default='snack'),
        sa.Column('image_url', sa.String(512), nullable=True),
        sa.Column('total_calories', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_protein', sa.Numeric(8, 2), nullable=False, server_default='0'),
        sa.Column('total_carbs', sa.Numeric(8, 2), nullable=False, server_default='0'),
        sa.Column('total_fat', sa.Numeric(8, 2), nullable=False, server_default='0'),
        sa.Column('total_fiber', sa.Numeric(8, 2), nullable=True),
        sa.Column('health_score', sa.Float(), nullable=True),
        sa.Column('meal_date', sa.Date(), nullable=False),
        sa.Column('consumed_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_meals_user_id', 'meals', ['user_id'], unique=False)
    op.create_index('idx_meals_user_date', 'meals', ['user_id', 'meal_date'], unique=False)
    op.create_index('idx_meals_consumed_at', 'meals', ['consumed_at'], unique=False)

    op.create_table(
        'detected_foods',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('meal_id', sa.String(36), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('confidence', sa.Numeric(3, 2), nullable=False),
        sa.Column('portion_amount', sa.Numeric(6, 2), nullable=False),
        sa.Column('portion_unit', sa.String(16), nullable=False, server_default='g'),
        sa.Column('calories', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('protein', sa.Numeric(8, 2), nullable=False, server_default='0'),
        sa.Column('carbs', sa.Numeric(8, 2), nullable=False, server_default='0'),
        sa.Column('fat', sa.Numeric(8, 2), nullable=False, server_default='0'),
        sa.Column('fiber', sa.Numeric(8, 2), nullable=True),
        sa.Column('category', sa.String(20), nullable=False, server_default='mixed'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['meal_id'], ['meals.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_detected_foods_meal_id', 'detected_foods', ['meal_id'], unique=False)


def downgrade() -> None:
    op.drop_index('idx_detected_foods_meal_id', table_name='detected_foods')
    op.drop_table('detected_foods')

    op.drop_index('idx_meals_consumed_at', table_name='meals')
    op.drop_index('idx_meals_user_date', table_name='meals')
    op.drop_index('idx_meals_user_id', table_name='meals')
    op.drop_table('meals')

    op.drop_index(op.f('ix_sessions_token'), table_name='sessions')
    op.drop_table('sessions')

    op.drop_table('users')
