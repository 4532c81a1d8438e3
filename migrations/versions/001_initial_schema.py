"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create users table
    op.create_table(
        'users',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('first_name', sa.String(length=100), nullable=True),
        sa.Column('last_name', sa.String(length=100), nullable=True),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('password_hash', sa.String(length=255), nullable=True),
        sa.Column('email_verified', sa.Boolean(), nullable=False),
        sa.Column('verification_code', sa.String(length=6), nullable=True),
        sa.Column('verification_expiry', sa.DateTime(), nullable=True),
        sa.Column('reset_code', sa.String(length=6), nullable=True),
        sa.Column('reset_expiry', sa.DateTime(), nullable=True),
        sa.Column('is_admin', sa.Boolean(), nullable=False),
        sa.Column('onboarding_completed', sa.Boolean(), nullable=False),
        sa.Column('onboarding_step', sa.Integer(), nullable=False),
        sa.Column('google_id', sa.String(length=255), nullable=True),
        sa.Column('auth_provider', sa.String(length=20), nullable=False),
        sa.Column('profile_image_url', sa.String(length=1000), nullable=True),
        sa.Column('account_locked', sa.Boolean(), nullable=False),
        sa.Column('locked_until', sa.DateTime(), nullable=True),
        sa.Column('failed_login_attempts', sa.Integer(), nullable=False),
        sa.Column('last_login_at', sa.DateTime(), nullable=True),
        sa.Column('last_login_ip', sa.String(length=45), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('google_id')
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    # Create user_sessions table
    op.create_table(
        'user_sessions',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('session_token', sa.String(length=64), nullable=False),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('last_activity', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('revoked_at', sa.DateTime(), nullable=True),
        sa.Column('revoke_reason', sa.String(length=50), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_user_sessions_session_token', 'user_sessions', ['session_token'], unique=True)
    op.create_index('idx_user_sessions_user', 'user_sessions', ['user_id'])

    # Create login_attempts table
    op.create_table(
        'login_attempts',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('success', sa.Boolean(), nullable=False),
        sa.Column('failure_reason', sa.String(length=50), nullable=True),
        sa.Column('attempted_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_login_attempts_email_time', 'login_attempts', ['email', 'attempted_at'])

    # Create security_events table
    op.create_table(
        'security_events',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=True),
        sa.Column('event_type', sa.String(length=50), nullable=False),
        sa.Column('severity', sa.String(length=20), nullable=False),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )

    # Create brands table
    op.create_table(
        'brands',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('domain', sa.String(length=255), nullable=False),
        sa.Column('industry', sa.String(length=100), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('tier', sa.String(length=20), nullable=False),
        sa.Column('brand_variations', sa.JSON(), nullable=True),
        sa.Column('core_topics', sa.JSON(), nullable=True),
        sa.Column('primary_language', sa.String(length=10), nullable=False),
        sa.Column('visibility_score', sa.Integer(), nullable=False),
        sa.Column('last_analysis', sa.DateTime(), nullable=True),
        sa.Column('analysis_enabled', sa.Boolean(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('domain')
    )

    # Create competitors table
    op.create_table(
        'competitors',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('brand_id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('domain', sa.String(length=255), nullable=False),
        sa.Column('is_tracked', sa.Boolean(), nullable=False),
        sa.Column('visibility_score', sa.Integer(), nullable=False),
        sa.Column('mentions', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['brand_id'], ['brands.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_competitors_brand', 'competitors', ['brand_id'])

    # Create topics table
    op.create_table(
        'topics',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('brand_id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('category', sa.String(length=100), nullable=True),
        sa.Column('importance', sa.String(length=10), nullable=True),
        sa.Column('prompt_count', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['brand_id'], ['brands.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )

    # Create prompts table
    op.create_table(
        'prompts',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('brand_id', sa.String(length=36), nullable=False),
        sa.Column('topic_id', sa.String(length=36), nullable=True),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('category', sa.String(length=100), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('run_count', sa.Integer(), nullable=False),
        sa.Column('last_checked', sa.DateTime(), nullable=True),
        sa.Column('visibility_pct', sa.Float(), nullable=True),
        sa.Column('avg_rank', sa.Float(), nullable=True),
        sa.Column('is_brand_present', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['brand_id'], ['brands.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['topic_id'], ['topics.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_prompts_brand_status', 'prompts', ['brand_id', 'status'])

    # Create llm_answers table
    op.create_table(
        'llm_answers',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('prompt_id', sa.String(length=36), nullable=False),
        sa.Column('brand_id', sa.String(length=36), nullable=False),
        sa.Column('llm_provider', sa.String(length=50), nullable=False),
        sa.Column('llm_model', sa.String(length=100), nullable=False),
        sa.Column('raw_response', sa.Text(), nullable=False),
        sa.Column('response_hash', sa.String(length=64), nullable=False),
        sa.Column('tokens_used', sa.Integer(), nullable=False),
        sa.Column('cost', sa.Float(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['prompt_id'], ['prompts.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['brand_id'], ['brands.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_llm_answers_brand_created', 'llm_answers', ['brand_id', 'created_at'])
    op.create_index('idx_llm_answers_prompt_provider', 'llm_answers', ['prompt_id', 'llm_provider'])

    # Create prompt_runs table
    op.create_table(
        'prompt_runs',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('prompt_id', sa.String(length=36), nullable=False),
        sa.Column('brand_id', sa.String(length=36), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('providers_used', sa.JSON(), nullable=True),
        sa.Column('answers_generated', sa.Integer(), nullable=False),
        sa.Column('tokens_used', sa.Integer(), nullable=False),
        sa.Column('cost', sa.Float(), nullable=False),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('started_at', sa.DateTime(), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['prompt_id'], ['prompts.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['brand_id'], ['brands.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )

    # Create answer_mentions table
    op.create_table(
        'answer_mentions',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('llm_answer_id', sa.String(length=36), nullable=False),
        sa.Column('brand_id', sa.String(length=36), nullable=False),
        sa.Column('competitor_id', sa.String(length=36), nullable=True),
        sa.Column('entity_type', sa.String(length=20), nullable=False),
        sa.Column('entity_name', sa.String(length=255), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('context', sa.Text(), nullable=True),
        sa.Column('sentiment', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['llm_answer_id'], ['llm_answers.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['brand_id'], ['brands.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['competitor_id'], ['competitors.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_answer_mentions_brand_created', 'answer_mentions', ['brand_id', 'created_at'])

    # Create answer_citations table
    op.create_table(
        'answer_citations',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('llm_answer_id', sa.String(length=36), nullable=False),
        sa.Column('url', sa.Text(), nullable=False),
        sa.Column('domain', sa.String(length=255), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('citation_type', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['llm_answer_id'], ['llm_answers.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )

    # Create visibility_scores table
    op.create_table(
        'visibility_scores',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('brand_id', sa.String(length=36), nullable=False),
        sa.Column('period', sa.String(length=10), nullable=False),
        sa.Column('period_start', sa.DateTime(), nullable=False),
        sa.Column('period_end', sa.DateTime(), nullable=False),
        sa.Column('overall_score', sa.Integer(), nullable=False),
        sa.Column('mention_rate', sa.Float(), nullable=False),
        sa.Column('avg_position', sa.Float(), nullable=False),
        sa.Column('sentiment_score', sa.Float(), nullable=False),
        sa.Column('trend', sa.String(length=10), nullable=False),
        sa.Column('total_prompts', sa.Integer(), nullable=False),
        sa.Column('total_mentions', sa.Integer(), nullable=False),
        sa.Column('citation_count', sa.Integer(), nullable=False),
        sa.Column('position_distribution', sa.JSON(), nullable=True),
        sa.Column('sentiment_distribution', sa.JSON(), nullable=True),
        sa.Column('provider_breakdown', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['brand_id'], ['brands.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(
        'idx_visibility_scores_brand_period',
        'visibility_scores',
        ['brand_id', 'period', 'created_at'],
    )

    # Create serp_samples table
    op.create_table(
        'serp_samples',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('brand_id', sa.String(length=36), nullable=False),
        sa.Column('prompt_id', sa.String(length=36), nullable=True),
        sa.Column('query', sa.Text(), nullable=False),
        sa.Column('location', sa.String(length=100), nullable=True),
        sa.Column('device', sa.String(length=20), nullable=False),
        sa.Column('total_results', sa.Integer(), nullable=False),
        sa.Column('brand_position', sa.Integer(), nullable=False),
        sa.Column('brand_url', sa.Text(), nullable=True),
        sa.Column('top_results', sa.JSON(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['brand_id'], ['brands.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['prompt_id'], ['prompts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_serp_samples_brand_created', 'serp_samples', ['brand_id', 'created_at'])


def downgrade() -> None:
    op.drop_table('serp_samples')
    op.drop_table('visibility_scores')
    op.drop_table('answer_citations')
    op.drop_table('answer_mentions')
    op.drop_table('prompt_runs')
    op.drop_table('llm_answers')
    op.drop_table('prompts')
    op.drop_table('topics')
    op.drop_table('competitors')
    op.drop_table('brands')
    op.drop_table('security_events')
    op.drop_table('login_attempts')
    op.drop_table('user_sessions')
    op.drop_table('users')
