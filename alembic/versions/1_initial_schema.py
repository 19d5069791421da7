"""initial schema

Revision ID: 1
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '1'
down_revision = None
branch_labels = None
depends_on = None

SPECIES = ('canine', 'feline', 'bovine', 'equine', 'reptile', 'avian', 'other')
DOCUMENT_TYPES = ('prescription', 'attestation')
DOCUMENT_STATUSES = ('draft', 'issued')
AUDIT_ACTIONS = ('CREATE', 'READ', 'UPDATE', 'DELETE', 'LOGIN', 'ISSUE', 'VERIFY', 'EXPORT', 'ACCESS_DENIED')


def _address_columns():
    return [
        sa.Column('cep', sa.String(8), nullable=True),
        sa.Column('street', sa.String(255), nullable=True),
        sa.Column('number', sa.String(20), nullable=True),
        sa.Column('neighborhood', sa.String(100), nullable=True),
        sa.Column('city', sa.String(100), nullable=True),
        sa.Column('state', sa.String(2), nullable=True),
    ]


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('last_login', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'practitioner_profiles',
        sa.Column('practitioner_id', sa.Integer(), sa.ForeignKey('users.id'), primary_key=True),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('crmv_state', sa.String(2), nullable=True),
        sa.Column('crmv_number', sa.String(50), nullable=True),
        sa.Column('secondary_registration', sa.String(50), nullable=True),
        sa.Column('phone', sa.String(20), nullable=True),
        sa.Column('cpf_encrypted', sa.LargeBinary(), nullable=True),
        sa.Column('specialty', sa.String(100), nullable=True),
        sa.Column('clinic_name', sa.String(255), nullable=True),
        *_address_columns(),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        'tutors',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('practitioner_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(20), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('cpf_encrypted', sa.LargeBinary(), nullable=True),
        *_address_columns(),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_tutors_id', 'tutors', ['id'])
    op.create_index('idx_tutors_practitioner_name', 'tutors', ['practitioner_id', 'name'])

    op.create_table(
        'patients',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('tutor_id', sa.Integer(), sa.ForeignKey('tutors.id'), nullable=False),
        sa.Column('practitioner_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('species', sa.Enum(*SPECIES, name='species'), nullable=False),
        sa.Column('breed', sa.String(100), nullable=True),
        sa.Column('sex', sa.String(20), nullable=True),
        sa.Column('date_of_birth', sa.Date(), nullable=True),
        sa.Column('age', sa.String(50), nullable=True),
        sa.Column('weight', sa.String(20), nullable=True),
        sa.Column('color', sa.String(100), nullable=True),
        sa.Column('microchip', sa.String(50), nullable=True),
        sa.Column('neutered', sa.Boolean(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_patients_id', 'patients', ['id'])
    op.create_index('idx_patients_tutor_name', 'patients', ['tutor_id', 'name'])
    op.create_index('idx_patients_practitioner', 'patients', ['practitioner_id'])

    op.create_table(
        'prescriptions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('public_code', sa.String(36), nullable=False),
        sa.Column('draft_id', sa.String(36), nullable=False, unique=True),
        sa.Column('document_type', sa.Enum(*DOCUMENT_TYPES, name='document_type'), nullable=False),
        sa.Column('status', sa.Enum(*DOCUMENT_STATUSES, name='document_status'), nullable=False),
        sa.Column('practitioner_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('patient_id', sa.Integer(), sa.ForeignKey('patients.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('tutor_id', sa.Integer(), sa.ForeignKey('tutors.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('issue_date', sa.Date(), nullable=False),
        sa.Column('purpose', sa.Text(), nullable=False),
        sa.Column('attestation_text', sa.Text(), nullable=True),
        sa.Column('patient_name', sa.String(255), nullable=False),
        sa.Column('tutor_name', sa.String(255), nullable=False),
        sa.Column('practitioner_snapshot', sa.JSON(), nullable=False),
        sa.Column('patient_snapshot', sa.JSON(), nullable=False),
        sa.Column('tutor_snapshot', sa.JSON(), nullable=False),
        sa.Column('tutor_document_encrypted', sa.LargeBinary(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_prescriptions_id', 'prescriptions', ['id'])
    op.create_index('ix_prescriptions_public_code', 'prescriptions', ['public_code'], unique=True)
    op.create_index('idx_prescriptions_practitioner_date', 'prescriptions', ['practitioner_id', 'issue_date'])
    op.create_index('idx_prescriptions_patient', 'prescriptions', ['patient_id'])
    op.create_index('idx_prescriptions_type', 'prescriptions', ['document_type'])

    op.create_table(
        'prescription_medications',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('prescription_id', sa.Integer(), sa.ForeignKey('prescriptions.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('dosage', sa.String(255), nullable=False),
        sa.Column('frequency', sa.String(255), nullable=False),
        sa.Column('duration', sa.String(255), nullable=True),
    )
    op.create_index('ix_prescription_medications_id', 'prescription_medications', ['id'])
    op.create_index('ix_prescription_medications_prescription_id', 'prescription_medications', ['prescription_id'])

    op.create_table(
        'appointments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('practitioner_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('tutor_id', sa.Integer(), sa.ForeignKey('tutors.id'), nullable=False),
        sa.Column('patient_id', sa.Integer(), sa.ForeignKey('patients.id'), nullable=False),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_appointments_id', 'appointments', ['id'])
    op.create_index('idx_appointments_practitioner_start', 'appointments', ['practitioner_id', 'start_time'])
    op.create_index('idx_appointments_date_range', 'appointments', ['start_time', 'end_time'])

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('action', sa.Enum(*AUDIT_ACTIONS, name='audit_action'), nullable=False),
        sa.Column('category', sa.String(50), nullable=False),
        sa.Column('severity', sa.String(20), nullable=True),
        sa.Column('resource_type', sa.String(50), nullable=True),
        sa.Column('resource_id', sa.String(64), nullable=True),
        sa.Column('details', sa.Text(), nullable=True),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('timestamp', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_audit_logs_id', 'audit_logs', ['id'])
    op.create_index('ix_audit_logs_category', 'audit_logs', ['category'])
    op.create_index('ix_audit_logs_severity', 'audit_logs', ['severity'])
    op.create_index('ix_audit_logs_timestamp', 'audit_logs', ['timestamp'])
    op.create_index('idx_audit_user_date', 'audit_logs', ['user_id', 'timestamp'])
    op.create_index('idx_audit_action_date', 'audit_logs', ['action', 'timestamp'])
    op.create_index('idx_audit_resource', 'audit_logs', ['resource_type', 'resource_id'])


def downgrade():
    op.drop_table('audit_logs')
    op.drop_table('appointments')
    op.drop_table('prescription_medications')
    op.drop_table('prescriptions')
    op.drop_table('patients')
    op.drop_table('tutors')
    op.drop_table('practitioner_profiles')
    op.drop_table('users')
    for enum_name in ('audit_action', 'document_status', 'document_type', 'species'):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
