"""create survey tables

Revision ID: 0001_create_survey_tables
Revises:
Create Date: 2025-06-15 10:30:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_create_survey_tables'
down_revision = None
branch_labels = None
depends_on = None

# Scalar survey columns, all nullable
_OPTIONAL_COLUMNS = (
    ('culvert_type', 50), ('culvert_diameter', 20), ('water_flow', 50),
    ('culvert_blockage', 50), ('header_condition', 100), ('inlet_condition', 100),
    ('outlet_condition', 100), ('ownership', 50), ('perched_status', 100),
    ('road_condition', 100),
    ('ditch_adjacent', 100), ('ditch_water', 50), ('ditch_vegetation', 100),
    ('ditch_vegetation_present', 100), ('ditch_erosion', 50),
    ('drain_surface', 50), ('drain_blockage', 50), ('drain_water_flow', 100),
    ('drain_outflow', 50), ('drain_outlet_blockage', 50), ('drain_type', 50),
)
_DETAIL_COLUMNS = (
    'ditch_adjacent_other', 'ditch_water_other', 'ditch_vegetation_other',
    'drain_surface_other', 'drain_blockage_other', 'drain_type_other', 'additional_info',
)
_PHOTO_COLUMNS = ('inlet_photo', 'outlet_photo', 'ditch_photo', 'drain_photo')


def upgrade() -> None:
    op.create_table('culvert_surveys',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('client_submission_id', sa.String(length=64), nullable=True),
        sa.Column('reporter_name', sa.String(length=255), nullable=False),
        sa.Column('report_type', sa.String(length=20), nullable=False),
        sa.Column('latitude', sa.Float(), nullable=False),
        sa.Column('longitude', sa.Float(), nullable=False),
        sa.Column('timestamp', sa.String(length=32), nullable=False),
        *[sa.Column(name, sa.String(length=length), nullable=True) for name, length in _OPTIONAL_COLUMNS],
        *[sa.Column(name, sa.Text(), nullable=True) for name in _DETAIL_COLUMNS],
        *[sa.Column(name, sa.LargeBinary(), nullable=True) for name in _PHOTO_COLUMNS],
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_culvert_surveys_client_submission_id', 'culvert_surveys',
                    ['client_submission_id'], unique=True)
    op.create_index('ix_culvert_surveys_reporter_name', 'culvert_surveys', ['reporter_name'], unique=False)

    op.create_table('survey_photos',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('survey_id', sa.Integer(), nullable=False),
        sa.Column('image', sa.LargeBinary(), nullable=False),
        sa.ForeignKeyConstraint(['survey_id'], ['culvert_surveys.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_survey_photos_survey_id', 'survey_photos', ['survey_id'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_survey_photos_survey_id', table_name='survey_photos')
    op.drop_table('survey_photos')
    op.drop_index('ix_culvert_surveys_reporter_name', table_name='culvert_surveys')
    op.drop_index('ix_culvert_surveys_client_submission_id', table_name='culvert_surveys')
    op.drop_table('culvert_surveys')
