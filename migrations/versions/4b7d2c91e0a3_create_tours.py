"""create properties and tours

Revision ID: 4b7d2c91e0a3
Revises: 
Create Date: 2026-10-18 18:45:12.104211

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4b7d2c91e0a3'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('properties',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('landlord_id', sa.String(length=36), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=255), nullable=True),
        sa.Column('address', sa.String(length=500), nullable=True),
        sa.Column('city', sa.String(length=100), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug')
    )
    with op.batch_alter_table('properties', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_properties_landlord_id'), ['landlord_id'], unique=False)

    op.create_table('tours',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('property_id', sa.String(length=36), nullable=False),
        sa.Column('landlord_id', sa.String(length=36), nullable=False),
        sa.Column('tenant_id', sa.String(length=36), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('scheduled_at', sa.DateTime(), nullable=False),
        sa.Column('timezone', sa.String(length=64), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('cancelled_reason', sa.Text(), nullable=True),
        sa.Column('cancelled_by', sa.String(length=36), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['property_id'], ['properties.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('tours', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_tours_property_id'), ['property_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_tours_landlord_id'), ['landlord_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_tours_tenant_id'), ['tenant_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_tours_status'), ['status'], unique=False)
        batch_op.create_index('ix_tours_property_slot', ['property_id', 'scheduled_at'], unique=False)


def downgrade():
    with op.batch_alter_table('tours', schema=None) as batch_op:
        batch_op.drop_index('ix_tours_property_slot')
        batch_op.drop_index(batch_op.f('ix_tours_status'))
        batch_op.drop_index(batch_op.f('ix_tours_tenant_id'))
        batch_op.drop_index(batch_op.f('ix_tours_landlord_id'))
        batch_op.drop_index(batch_op.f('ix_tours_property_id'))

    op.drop_table('tours')

    with op.batch_alter_table('properties', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_properties_landlord_id'))

    op.drop_table('properties')
