"""Create container yard tables

Revision ID: 001_yard
Revises:
Create Date: 2026-10-19

Tables:
- yard_slots: one row per (yard, block, bay, row, tier) position
- yard_events: truck visits and their processing status
- move_plans: plans produced for completed events
- preplannings: advisory placements submitted with events
- audit_logs: state transition history
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_yard'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _flag(name: str, default: str = '0') -> sa.Column:
    return sa.Column(name, sa.Integer, nullable=False, server_default=default)


def upgrade() -> None:
    """Create yard tables."""

    # ====================
    # YARD SLOTS
    # ====================
    op.create_table(
        'yard_slots',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('yard', sa.String(20), nullable=False),
        sa.Column('block', sa.String(20), nullable=False),
        sa.Column('bay', sa.Integer, nullable=False),
        sa.Column('row', sa.Integer, nullable=False),
        sa.Column('tier', sa.Integer, nullable=False, comment='1 = ground'),
        sa.Column('size_ft', sa.Integer, nullable=False, server_default='40'),
        sa.Column('container_id', sa.String(30), nullable=True, comment='NULL when the slot is empty'),
        _flag('is_import'),
        _flag('is_export'),
        _flag('is_reefer'),
        _flag('is_hazard'),
        _flag('is_dry', '1'),
        _flag('is_inter_transhipment'),
        _flag('is_intra_transhipment'),
        sa.Column('weight_kg', sa.Float, nullable=False, server_default='0'),
        sa.Column('time', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('yard', 'block', 'bay', 'row', 'tier', name='uq_yard_slot_position'),
    )
    op.create_index('ix_yard_slots_column', 'yard_slots', ['yard', 'block', 'bay', 'row'])
    op.create_index('ix_yard_slots_container_id', 'yard_slots', ['container_id'])

    # ====================
    # YARD EVENTS
    # ====================
    op.create_table(
        'yard_events',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('truck_id', sa.String(50), nullable=False),
        sa.Column('container_id', sa.String(30), nullable=False),
        sa.Column('move_type', sa.String(20), nullable=False),
        _flag('is_import'),
        _flag('is_export'),
        _flag('is_inter_transhipment'),
        _flag('is_intra_transhipment'),
        _flag('is_reefer'),
        _flag('is_hazard'),
        _flag('is_dry'),
        _flag('is_pick_up'),
        _flag('is_drop_off'),
        sa.Column('weight_kg', sa.Float, nullable=False, server_default='0'),
        sa.Column('size_ft', sa.Integer, nullable=False, server_default='40'),
        sa.Column('time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='PROCESSING'),
        sa.Column('failure_kind', sa.String(50), nullable=True),
        sa.Column('failure_reason', sa.Text, nullable=True),
        sa.Column('attempts', sa.Integer, nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_yard_events_status', 'yard_events', ['status'])
    op.create_index('ix_yard_events_truck_id', 'yard_events', ['truck_id'])
    op.create_index('ix_yard_events_container_id', 'yard_events', ['container_id'])
    op.create_index('ix_yard_events_created_at', 'yard_events', ['created_at'])

    # ====================
    # MOVE PLANS
    # ====================
    op.create_table(
        'move_plans',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('event_id', sa.Integer, sa.ForeignKey('yard_events.id', ondelete='CASCADE'), nullable=False),
        sa.Column('event_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('start_time', sa.Float, nullable=False),
        sa.Column('end_time', sa.Float, nullable=False),
        sa.Column('container_id', sa.String(30), nullable=False),
        sa.Column('move_type', sa.String(20), nullable=False),
        sa.Column('from_sid', sa.String(40), nullable=False),
        sa.Column('from_tier', sa.Integer, nullable=False),
        sa.Column('to_sid', sa.String(40), nullable=False),
        sa.Column('to_tier', sa.Integer, nullable=False),
        sa.Column('distance_crane', sa.Float, nullable=False),
        sa.Column('crane_id', sa.String(30), nullable=False),
        sa.Column('from_truck_zone_id', sa.String(30), nullable=False),
        sa.Column('to_truck_zone_id', sa.String(30), nullable=False),
        sa.Column('truck_id', sa.String(50), nullable=False),
        sa.Column('distance_internal_truck', sa.Float, nullable=False),
        sa.Column('distance_external_truck', sa.Float, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_move_plans_event_id', 'move_plans', ['event_id'])

    # ====================
    # PREPLANNINGS
    # ====================
    op.create_table(
        'preplannings',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('event_id', sa.Integer, sa.ForeignKey('yard_events.id', ondelete='SET NULL'), nullable=True),
        sa.Column('container_id', sa.String(30), nullable=False),
        sa.Column('yard', sa.String(20), nullable=False),
        sa.Column('block', sa.String(20), nullable=False),
        sa.Column('bay', sa.Integer, nullable=False),
        sa.Column('row', sa.Integer, nullable=False),
        sa.Column('tier', sa.Integer, nullable=False),
        sa.Column('time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='ACTIVE'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_preplannings_event_id', 'preplannings', ['event_id'])
    op.create_index('ix_preplannings_container_id', 'preplannings', ['container_id'])

    # ====================
    # AUDIT LOGS
    # ====================
    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('entity_type', sa.String(50), nullable=False),
        sa.Column('entity_id', sa.Integer, nullable=True),
        sa.Column('payload', sa.JSON, nullable=True),
        sa.Column('ip_address', sa.String(50), nullable=True),
        sa.Column('user_agent', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_entity_type', 'audit_logs', ['entity_type'])
    op.create_index('ix_audit_logs_created_at', 'audit_logs', ['created_at'])


def downgrade() -> None:
    """Drop yard tables."""
    op.drop_table('audit_logs')
    op.drop_table('preplannings')
    op.drop_table('move_plans')
    op.drop_table('yard_events')
    op.drop_table('yard_slots')
