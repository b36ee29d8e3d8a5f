"""initial schema: tenants, accounts, players, evaluations, curriculums

Revision ID: 001
Revises: 
Create Date: 2026-10-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _created_at(nullable: bool = False) -> sa.Column:
    return sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=nullable)


def _derived_table(name: str, payload: str) -> None:
    op.create_table(
        name,
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            'player_evaluation_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('player_evaluations.id', ondelete='CASCADE'),
            nullable=False,
            unique=True,
        ),
        sa.Column(payload, postgresql.JSONB(), nullable=False),
        _created_at(),
    )


def upgrade() -> None:
    # users and companies reference each other; the owner FK is added last
    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('email', sa.Text(), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('password_hash', sa.Text(), nullable=False),
        sa.Column('role', sa.String(16), server_default='owner', nullable=False),
        sa.Column('company_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('email_verified', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('onboarded', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('email_code', sa.String(6), nullable=True),
        sa.Column('password_reset_code', sa.String(10), nullable=True),
        sa.Column('phone_number', sa.Text(), nullable=True),
        sa.Column('image', sa.Text(), nullable=True),
        _created_at(),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint("role IN ('owner', 'admin', 'coach', 'parent', 'player')", name='ck_users_role'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_company_id', 'users', ['company_id'])

    op.create_table(
        'companies',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('owner_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('logo', sa.Text(), nullable=True),
        sa.Column('website_url', sa.Text(), nullable=True),
        sa.Column('phone_number', sa.Text(), nullable=True),
        _created_at(),
    )
    op.create_index('ix_companies_owner_id', 'companies', ['owner_id'])

    op.create_foreign_key('fk_users_company_id', 'users', 'companies', ['company_id'], ['id'], ondelete='SET NULL')
    op.create_foreign_key('fk_companies_owner_id', 'companies', 'users', ['owner_id'], ['id'])

    op.create_table(
        'teams',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('company_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('companies.id', ondelete='CASCADE'), nullable=False),
        sa.Column('coach_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('curriculum_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('age_group', sa.Text(), nullable=True),
        _created_at(),
    )
    op.create_index('ix_teams_company_id', 'teams', ['company_id'])
    op.create_index('ix_teams_coach_id', 'teams', ['coach_id'])

    op.create_table(
        'players',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('team_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('teams.id', ondelete='CASCADE'), nullable=False),
        sa.Column('parent_user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('first_name', sa.Text(), nullable=False),
        sa.Column('last_name', sa.Text(), nullable=False),
        sa.Column('dob', sa.Date(), nullable=True),
        sa.Column('age_group', sa.Text(), nullable=True),
        sa.Column('gender', sa.Text(), nullable=True),
        sa.Column('dominant_foot', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('self_supervised', sa.Boolean(), server_default=sa.false(), nullable=False),
        _created_at(),
    )
    op.create_index('ix_players_team_id', 'players', ['team_id'])
    op.create_index('ix_players_parent_user_id', 'players', ['parent_user_id'])

    op.create_table(
        'evaluations',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('team_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('teams.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('scores', postgresql.JSONB(), server_default=sa.text("'{}'::jsonb"), nullable=False),
        _created_at(),
    )
    op.create_index('ix_evaluations_team_id', 'evaluations', ['team_id'])

    op.create_table(
        'player_evaluations',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('player_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('players.id', ondelete='CASCADE'), nullable=False),
        sa.Column('team_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('teams.id', ondelete='CASCADE'), nullable=False),
        sa.Column('evaluation_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('evaluations.id', ondelete='CASCADE'), nullable=True),
        sa.Column('name', sa.Text(), nullable=True),
        _created_at(nullable=True),
    )
    op.create_index('ix_player_evaluations_player_id', 'player_evaluations', ['player_id'])
    op.create_index('ix_player_evaluations_team_id', 'player_evaluations', ['team_id'])
    op.create_index('ix_player_evaluations_evaluation_id', 'player_evaluations', ['evaluation_id'])

    _derived_table('test_scores', 'scores')
    _derived_table('overall_scores', 'scores')
    _derived_table('player_dna', 'dna')
    _derived_table('player_cluster', 'cluster')

    op.create_table(
        'curriculums',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('company_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('companies.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('tests', postgresql.JSONB(), server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.Column('created_by', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        _created_at(),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    )
    op.create_index('ix_curriculums_company_id', 'curriculums', ['company_id'])
    op.create_index('ix_curriculums_created_by', 'curriculums', ['created_by'])

    # teams precede curriculums
    op.create_index('ix_teams_curriculum_id', 'teams', ['curriculum_id'])
    op.create_foreign_key(
        'fk_teams_curriculum_id', 'teams', 'curriculums', ['curriculum_id'], ['id'], ondelete='SET NULL'
    )


def downgrade() -> None:
    op.drop_constraint('fk_teams_curriculum_id', 'teams', type_='foreignkey')
    op.drop_table('curriculums')
    op.drop_table('player_cluster')
    op.drop_table('player_dna')
    op.drop_table('overall_scores')
    op.drop_table('test_scores')
    op.drop_table('player_evaluations')
    op.drop_table('evaluations')
    op.drop_table('players')
    op.drop_table('teams')
    op.drop_constraint('fk_companies_owner_id', 'companies', type_='foreignkey')
    op.drop_constraint('fk_users_company_id', 'users', type_='foreignkey')
    op.drop_table('companies')
    op.drop_table('users')
