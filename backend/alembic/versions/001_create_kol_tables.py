"""create project / collaboration / works / tasks tables

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'project_capital_rates',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('value', sa.Numeric(6, 3), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'talents',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('nickname', sa.String(100), nullable=False),
        sa.Column('xingtu_id', sa.String(64), nullable=True, index=True),
        sa.Column('uid', sa.String(64), nullable=True),
        sa.Column('talent_tier', sa.String(20), nullable=True),
        sa.Column('talent_type', sa.JSON(), nullable=True),
        sa.Column('performance_last_updated', sa.DateTime(timezone=True), nullable=True),
        sa.Column('prices', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'projects',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('qianchuan_id', sa.String(64), nullable=True),
        sa.Column('type', sa.String(50), nullable=True, index=True),
        sa.Column('year', sa.String(10), nullable=True),
        sa.Column('month', sa.String(10), nullable=True),
        sa.Column('financial_year', sa.String(10), nullable=True, index=True),
        sa.Column('financial_month', sa.String(10), nullable=True),
        sa.Column('status', sa.String(20), nullable=True, index=True),
        sa.Column('budget', sa.Numeric(14, 2), nullable=True),
        sa.Column('benchmark_cpm', sa.Numeric(10, 2), nullable=True),
        sa.Column('discount', sa.Numeric(8, 4), nullable=True),
        sa.Column('capital_rate_id', sa.String(64), sa.ForeignKey('project_capital_rates.id'), nullable=True),
        sa.Column('adjustments', sa.JSON(), nullable=True),
        sa.Column('project_files', sa.JSON(), nullable=True),
        sa.Column('audit_log', sa.JSON(), nullable=True),
        sa.Column('tracking_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        'collaborations',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('project_id', sa.String(64), sa.ForeignKey('projects.id'), nullable=False, index=True),
        sa.Column('talent_id', sa.String(64), sa.ForeignKey('talents.id'), nullable=False, index=True),
        sa.Column('talent_source', sa.String(50), nullable=True),
        sa.Column('amount', sa.Numeric(14, 2), nullable=True),
        sa.Column('price_info', sa.String(200), nullable=True),
        sa.Column('rebate', sa.Numeric(6, 2), nullable=True),
        sa.Column('actual_rebate', sa.Numeric(14, 2), nullable=True),
        sa.Column('order_type', sa.String(20), nullable=True),
        sa.Column('status', sa.String(20), nullable=True, index=True),
        sa.Column('order_date', sa.Date(), nullable=True),
        sa.Column('planned_release_date', sa.Date(), nullable=True),
        sa.Column('publish_date', sa.Date(), nullable=True),
        sa.Column('payment_date', sa.Date(), nullable=True),
        sa.Column('recovery_date', sa.Date(), nullable=True),
        sa.Column('video_id', sa.String(64), nullable=True),
        sa.Column('content_file', sa.String(500), nullable=True),
        sa.Column('task_id', sa.String(64), nullable=True),
        sa.Column('rebate_screenshots', sa.JSON(), nullable=True),
        sa.Column('discrepancy_reason', sa.Text(), nullable=True),
        sa.Column('discrepancy_reason_updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('idx_collaborations_project_status', 'collaborations', ['project_id', 'status'])

    op.create_table(
        'works',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('collaboration_id', sa.String(64),
                  sa.ForeignKey('collaborations.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('project_id', sa.String(64), nullable=True, index=True),
        sa.Column('talent_id', sa.String(64), nullable=True),
        sa.Column('task_id', sa.String(64), nullable=True),
        sa.Column('platform_work_id', sa.String(64), nullable=True),
        sa.Column('published_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('source_type', sa.String(20), nullable=False, server_default='COLLABORATION'),
        sa.Column('t7_stats_updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('t21_stats_updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        'work_daily_stats',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('work_id', sa.String(64), sa.ForeignKey('works.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('date', sa.Date(), nullable=False, index=True),
        sa.Column('total_views', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('cpm', sa.Float(), nullable=False, server_default='0'),
        sa.Column('cpm_change', sa.Float(), nullable=True),
        sa.Column('solution', sa.Text(), nullable=False, server_default=''),
        sa.UniqueConstraint('work_id', 'date', name='uq_work_daily_stat_work_date'),
    )

    op.create_table(
        'tasks',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('related_project_id', sa.String(64), nullable=False, index=True),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending', index=True),
        sa.Column('due_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('related_project_id', 'type', name='uq_task_project_type'),
    )

    op.create_table(
        'task_run_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.Column('trigger_type', sa.String(20), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('summary', sa.Text(), nullable=True),
        sa.Column('created_tasks', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('completed_tasks', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('error', sa.JSON(), nullable=True),
    )
    op.create_index('idx_task_run_logs_timestamp', 'task_run_logs', ['timestamp'])


def downgrade():
    op.drop_index('idx_task_run_logs_timestamp', table_name='task_run_logs')
    op.drop_table('task_run_logs')
    op.drop_table('tasks')
    op.drop_table('work_daily_stats')
    op.drop_table('works')
    op.drop_index('idx_collaborations_project_status', table_name='collaborations')
    op.drop_table('collaborations')
    op.drop_table('projects')
    op.drop_table('talents')
    op.drop_table('project_capital_rates')
