"""Core schema: directory, requests, appointments, notifications, inventory.

Revision ID: 0001_core_schema
Revises:
Create Date: 2026-10-18

Creates:
- hospitals, donors
- blood_requests, request_ignores
- appointments
- notifications
- blood_unit_counters, donations
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_core_schema'
down_revision = None
branch_labels = None
depends_on = None

BLOOD_GROUP_CHECK = "blood_group IN ('O-', 'O+', 'A-', 'A+', 'B-', 'B+', 'AB-', 'AB+')"


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    # ==========================================================================
    # hospitals / donors
    # ==========================================================================
    op.create_table(
        'hospitals',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('city', sa.String(100), nullable=True),
        sa.Column('state', sa.String(100), nullable=True),
        sa.Column('latitude', sa.Float(), nullable=True),
        sa.Column('longitude', sa.Float(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
    )
    op.create_index('idx_hospitals_city', 'hospitals', ['city'])

    op.create_table(
        'donors',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('blood_group', sa.String(3), nullable=False),
        sa.Column('is_available', sa.Boolean(), nullable=False),
        sa.Column('last_donation_date', sa.Date(), nullable=True),
        sa.Column('latitude', sa.Float(), nullable=True),
        sa.Column('longitude', sa.Float(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
        sa.CheckConstraint(BLOOD_GROUP_CHECK, name='ck_donors_blood_group'),
    )
    op.create_index(
        'idx_donors_blood_group_available', 'donors', ['blood_group', 'is_available']
    )

    # ==========================================================================
    # blood_requests / request_ignores
    # ==========================================================================
    op.create_table(
        'blood_requests',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('hospital_id', sa.Uuid(), nullable=False),
        sa.Column('donor_id', sa.Uuid(), nullable=True),
        sa.Column('donation_kind', sa.String(10), nullable=False),
        sa.Column('blood_group', sa.String(3), nullable=False),
        sa.Column('units_needed', sa.Integer(), nullable=False),
        sa.Column('urgency', sa.String(20), nullable=False),
        sa.Column('patient_name', sa.String(255), nullable=False),
        sa.Column('patient_age', sa.Integer(), nullable=True),
        sa.Column('patient_gender', sa.String(20), nullable=True),
        sa.Column('patient_condition', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('location', sa.String(500), nullable=True),
        sa.Column('latitude', sa.Float(), nullable=True),
        sa.Column('longitude', sa.Float(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['hospital_id'], ['hospitals.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['donor_id'], ['donors.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(BLOOD_GROUP_CHECK, name='ck_requests_blood_group'),
        sa.CheckConstraint('units_needed > 0', name='ck_requests_units_positive'),
        sa.CheckConstraint(
            "(donor_id IS NOT NULL) = (status IN ('accepted', 'scheduled', 'completed'))",
            name='ck_requests_donor_bound',
        ),
    )
    op.create_index(
        'idx_requests_hospital_created', 'blood_requests', ['hospital_id', 'created_at']
    )
    op.create_index('idx_requests_status_group', 'blood_requests', ['status', 'blood_group'])
    op.create_index('idx_requests_donor', 'blood_requests', ['donor_id'])

    op.create_table(
        'request_ignores',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('request_id', sa.Uuid(), nullable=False),
        sa.Column('donor_id', sa.Uuid(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['request_id'], ['blood_requests.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['donor_id'], ['donors.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('request_id', 'donor_id', name='uq_request_ignore'),
    )
    op.create_index('idx_request_ignores_donor', 'request_ignores', ['donor_id'])

    # ==========================================================================
    # appointments
    # ==========================================================================
    op.create_table(
        'appointments',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('request_id', sa.Uuid(), nullable=True),
        sa.Column('donor_id', sa.Uuid(), nullable=False),
        sa.Column('hospital_id', sa.Uuid(), nullable=False),
        sa.Column('scheduled_date', sa.Date(), nullable=False),
        sa.Column('scheduled_time', sa.Time(), nullable=True),
        sa.Column('donation_kind', sa.String(10), nullable=False),
        sa.Column('units', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['request_id'], ['blood_requests.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['donor_id'], ['donors.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['hospital_id'], ['hospitals.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('units > 0', name='ck_appointments_units_positive'),
    )
    op.create_index('idx_appointments_donor_date', 'appointments', ['donor_id', 'scheduled_date'])
    op.create_index(
        'idx_appointments_hospital_date', 'appointments', ['hospital_id', 'scheduled_date']
    )
    op.create_index('idx_appointments_request', 'appointments', ['request_id'])
    op.create_index('idx_appointments_status', 'appointments', ['status'])

    # ==========================================================================
    # notifications
    # ==========================================================================
    op.create_table(
        'notifications',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('role', sa.String(20), nullable=False),
        sa.Column('kind', sa.String(50), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('entity_type', sa.String(50), nullable=True),
        sa.Column('entity_id', sa.Uuid(), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False),
        sa.Column('read_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_notif_user_created', 'notifications', ['user_id', 'created_at'])
    op.create_index('idx_notif_user_unread', 'notifications', ['user_id', 'is_read'])

    # ==========================================================================
    # blood_unit_counters / donations
    # ==========================================================================
    op.create_table(
        'blood_unit_counters',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('hospital_id', sa.Uuid(), nullable=False),
        sa.Column('blood_group', sa.String(3), nullable=False),
        sa.Column('donation_kind', sa.String(10), nullable=False),
        sa.Column('units', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['hospital_id'], ['hospitals.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'hospital_id', 'blood_group', 'donation_kind', name='uq_blood_unit_counter'
        ),
        sa.CheckConstraint('units >= 0', name='ck_blood_unit_counter_non_negative'),
        sa.CheckConstraint(BLOOD_GROUP_CHECK, name='ck_blood_unit_counter_group'),
    )

    op.create_table(
        'donations',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('hospital_id', sa.Uuid(), nullable=False),
        sa.Column('donor_id', sa.Uuid(), nullable=False),
        sa.Column('appointment_id', sa.Uuid(), nullable=False),
        sa.Column('request_id', sa.Uuid(), nullable=True),
        sa.Column('donation_kind', sa.String(10), nullable=False),
        sa.Column('blood_group', sa.String(3), nullable=False),
        sa.Column('units', sa.Integer(), nullable=False),
        sa.Column('donated_on', sa.Date(), nullable=False),
        sa.Column('notarization_status', sa.String(20), nullable=False),
        sa.Column('notarization_ref', sa.String(255), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['hospital_id'], ['hospitals.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['donor_id'], ['donors.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['appointment_id'], ['appointments.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['request_id'], ['blood_requests.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('appointment_id', name='uq_donation_appointment'),
        sa.CheckConstraint('units > 0', name='ck_donations_units_positive'),
    )
    op.create_index('idx_donations_hospital_date', 'donations', ['hospital_id', 'donated_on'])
    op.create_index('idx_donations_donor', 'donations', ['donor_id'])


def downgrade() -> None:
    op.drop_table('donations')
    op.drop_table('blood_unit_counters')
    op.drop_table('notifications')
    op.drop_table('appointments')
    op.drop_table('request_ignores')
    op.drop_table('blood_requests')
    op.drop_table('donors')
    op.drop_table('hospitals')
