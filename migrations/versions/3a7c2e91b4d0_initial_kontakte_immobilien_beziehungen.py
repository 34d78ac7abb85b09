"""Initial schema: Kontakte, Immobilien, Beziehungen, Audit-Log

Revision ID: 3a7c2e91b4d0
Revises:
Create Date: 2026-10-19 09:12:44.318204

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3a7c2e91b4d0'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ### Kontakte ###
    op.create_table('kontakte',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('adresse', sa.String(length=500), nullable=True),
        sa.Column('email', sa.String(length=200), nullable=True),
        sa.Column('telefon', sa.String(length=50), nullable=True),
        sa.Column('notizen', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )

    # ### Immobilien ###
    op.create_table('immobilien',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('titel', sa.String(length=200), nullable=False),
        sa.Column('beschreibung', sa.Text(), nullable=True),
        sa.Column('adresse', sa.String(length=500), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )

    # ### Beziehungen ###
    op.create_table('beziehungen',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('immobilien_id', sa.String(length=36), nullable=False),
        sa.Column('kontakt_id', sa.String(length=36), nullable=False),
        sa.Column('art', sa.String(length=20), nullable=False),
        sa.Column('startdatum', sa.Date(), nullable=True),
        sa.Column('enddatum', sa.Date(), nullable=True),
        sa.Column('dienstleistungen', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint(
            "art IN ('Eigentümer', 'Mieter', 'Dienstleister')",
            name='ck_beziehungen_art'
        ),
        sa.CheckConstraint(
            'startdatum IS NULL OR enddatum IS NULL OR startdatum <= enddatum',
            name='ck_beziehungen_zeitraum'
        ),
        sa.ForeignKeyConstraint(['immobilien_id'], ['immobilien.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['kontakt_id'], ['kontakte.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('beziehungen', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_beziehungen_art'), ['art'], unique=False)
        batch_op.create_index(batch_op.f('ix_beziehungen_immobilien_id'), ['immobilien_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_beziehungen_kontakt_id'), ['kontakt_id'], unique=False)

    # ### Audit-Log ###
    op.create_table('audit_log',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.Column('modul', sa.String(length=50), nullable=False),
        sa.Column('aktion', sa.String(length=100), nullable=False),
        sa.Column('details', sa.Text(), nullable=True),
        sa.Column('wichtigkeit', sa.String(length=20), nullable=False),
        sa.Column('entity_type', sa.String(length=50), nullable=True),
        sa.Column('entity_id', sa.String(length=36), nullable=True),
        sa.Column('ip_adresse', sa.String(length=45), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('audit_log', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_audit_log_timestamp'), ['timestamp'], unique=False)
        batch_op.create_index(batch_op.f('ix_audit_log_modul'), ['modul'], unique=False)
        batch_op.create_index(batch_op.f('ix_audit_log_aktion'), ['aktion'], unique=False)
        batch_op.create_index(batch_op.f('ix_audit_log_wichtigkeit'), ['wichtigkeit'], unique=False)

    # Auf PostgreSQL verhindert ein Exclusion-Constraint überlappende
    # Mietverhältnisse auch bei gleichzeitigen Schreibzugriffen.
    if op.get_bind().dialect.name == 'postgresql':
        op.execute('CREATE EXTENSION IF NOT EXISTS btree_gist')
        op.execute(
            "ALTER TABLE beziehungen ADD CONSTRAINT ex_beziehungen_mieter_zeitraum "
            "EXCLUDE USING gist (immobilien_id WITH =, "
            "daterange(startdatum, enddatum, '[]') WITH &&) "
            "WHERE (art = 'Mieter' AND startdatum IS NOT NULL)"
        )


def downgrade():
    with op.batch_alter_table('audit_log', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_audit_log_wichtigkeit'))
        batch_op.drop_index(batch_op.f('ix_audit_log_aktion'))
        batch_op.drop_index(batch_op.f('ix_audit_log_modul'))
        batch_op.drop_index(batch_op.f('ix_audit_log_timestamp'))
    op.drop_table('audit_log')

    with op.batch_alter_table('beziehungen', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_beziehungen_kontakt_id'))
        batch_op.drop_index(batch_op.f('ix_beziehungen_immobilien_id'))
        batch_op.drop_index(batch_op.f('ix_beziehungen_art'))
    op.drop_table('beziehungen')
    op.drop_table('immobilien')
    op.drop_table('kontakte')
