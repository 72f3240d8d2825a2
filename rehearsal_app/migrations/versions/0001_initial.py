"""initial schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    ]


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('last_name', sa.String(length=100), nullable=False),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('avatar_url', sa.String(length=255), nullable=True),
        sa.Column('timezone', sa.String(length=50), nullable=False, server_default='UTC'),
        *_timestamps(),
        sa.UniqueConstraint('email'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=False)

    op.create_table(
        'bands',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('logo_url', sa.String(length=255), nullable=True),
        sa.Column('created_by', sa.String(length=36), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['created_by'], ['users.id'], ondelete='SET NULL'),
    )
    op.create_index('ix_bands_created_by', 'bands', ['created_by'], unique=False)

    op.create_table(
        'band_members',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('band_id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('role', sa.String(length=50), nullable=False, server_default='member'),
        sa.Column('instrument', sa.String(length=100), nullable=True),
        sa.Column(
            'status',
            sa.Enum('active', 'invited', 'inactive', name='band_member_status'),
            nullable=False,
            server_default='invited',
        ),
        sa.Column('joined_at', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['band_id'], ['bands.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('band_id', 'user_id', name='uq_band_member'),
    )
    op.create_index('ix_band_members_band_id', 'band_members', ['band_id'], unique=False)
    op.create_index('ix_band_members_user_id', 'band_members', ['user_id'], unique=False)

    op.create_table(
        'locations',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('city', sa.String(length=100), nullable=True),
        sa.Column('state', sa.String(length=100), nullable=True),
        sa.Column('postal_code', sa.String(length=20), nullable=True),
        sa.Column('country', sa.String(length=100), nullable=True),
        sa.Column('latitude', sa.Float(), nullable=True),
        sa.Column('longitude', sa.Float(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('contact_info', sa.JSON(), nullable=True),
        sa.Column('band_id', sa.String(length=36), nullable=True),
        sa.Column('created_by', sa.String(length=36), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['band_id'], ['bands.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['created_by'], ['users.id'], ondelete='SET NULL'),
    )
    op.create_index('ix_locations_band_id', 'locations', ['band_id'], unique=False)

    op.create_table(
        'events',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('band_id', sa.String(length=36), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('start_time', sa.DateTime(), nullable=False),
        sa.Column('end_time', sa.DateTime(), nullable=False),
        sa.Column('location_id', sa.String(length=36), nullable=True),
        sa.Column(
            'event_type',
            sa.Enum('rehearsal', 'performance', 'meeting', 'other', name='event_type'),
            nullable=False,
            server_default='rehearsal',
        ),
        sa.Column('is_recurring', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('recurrence_pattern', sa.JSON(), nullable=True),
        sa.Column('parent_event_id', sa.String(length=36), nullable=True),
        sa.Column('original_start', sa.DateTime(), nullable=True),
        sa.Column(
            'status',
            sa.Enum('scheduled', 'cancelled', 'completed', name='event_status'),
            nullable=False,
            server_default='scheduled',
        ),
        sa.Column('created_by', sa.String(length=36), nullable=True),
        sa.Column('reminder_sent', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('follow_up_sent', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        *_timestamps(),
        sa.ForeignKeyConstraint(['band_id'], ['bands.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['location_id'], ['locations.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['parent_event_id'], ['events.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['created_by'], ['users.id'], ondelete='SET NULL'),
        sa.UniqueConstraint('parent_event_id', 'original_start', name='uq_event_occurrence'),
        sa.CheckConstraint('end_time > start_time', name='ck_event_time_order'),
    )
    op.create_index('ix_events_band_id', 'events', ['band_id'], unique=False)
    op.create_index('ix_events_start_time', 'events', ['start_time'], unique=False)
    op.create_index('ix_events_end_time', 'events', ['end_time'], unique=False)
    op.create_index('ix_events_location_id', 'events', ['location_id'], unique=False)
    op.create_index('ix_events_parent_event_id', 'events', ['parent_event_id'], unique=False)

    op.create_table(
        'event_responses',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('event_id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column(
            'response_status',
            sa.Enum('yes', 'no', 'maybe', name='event_response_status'),
            nullable=False,
            server_default='maybe',
        ),
        sa.Column('comment', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['event_id'], ['events.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('event_id', 'user_id', name='uq_event_response'),
    )
    op.create_index('ix_event_responses_event_id', 'event_responses', ['event_id'], unique=False)
    op.create_index('ix_event_responses_user_id', 'event_responses', ['user_id'], unique=False)

    op.create_table(
        'availabilities',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('band_id', sa.String(length=36), nullable=False),
        sa.Column('day_of_week', sa.Integer(), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.Column('recurring', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['band_id'], ['bands.id'], ondelete='CASCADE'),
        sa.CheckConstraint('day_of_week >= 0 AND day_of_week <= 6', name='ck_availability_day_of_week'),
    )
    op.create_index(
        'ix_availabilities_user_band_day', 'availabilities', ['user_id', 'band_id', 'day_of_week'], unique=False
    )

    op.create_table(
        'absences',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('band_id', sa.String(length=36), nullable=True),
        sa.Column('start_date', sa.DateTime(), nullable=False),
        sa.Column('end_date', sa.DateTime(), nullable=False),
        sa.Column('reason', sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['band_id'], ['bands.id'], ondelete='CASCADE'),
        sa.CheckConstraint('end_date >= start_date', name='ck_absence_date_order'),
    )
    op.create_index('ix_absences_user_id', 'absences', ['user_id'], unique=False)
    op.create_index('ix_absences_band_id', 'absences', ['band_id'], unique=False)


def downgrade():
    op.drop_table('absences')
    op.drop_table('availabilities')
    op.drop_table('event_responses')
    op.drop_table('events')
    op.drop_table('locations')
    op.drop_table('band_members')
    op.drop_table('bands')
    op.drop_table('users')
    bind = op.get_bind()
    if bind.dialect.name == 'postgresql':
        for name in ('event_response_status', 'event_status', 'event_type', 'band_member_status'):
            sa.Enum(name=name).drop(bind, checkfirst=True)
