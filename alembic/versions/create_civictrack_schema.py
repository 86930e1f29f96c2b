"""create civictrack schema

Creates users, issues, issue_photos, issue_activities and spam_reports.

Revision ID: create_civictrack_schema
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'create_civictrack_schema'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

user_role = sa.Enum('admin', 'citizen', name='userrole')
issue_category = sa.Enum('roads', 'lighting', 'water', 'cleanliness', 'safety', 'obstructions', name='issuecategory')
issue_status = sa.Enum('reported', 'in_progress', 'resolved', 'spam', 'invalid', name='issuestatus')


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'users',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('hashed_password', sa.String(length=255), nullable=False),
        sa.Column('username', sa.String(length=120), nullable=False),
        sa.Column('phone', sa.String(length=30), nullable=True),
        sa.Column('role', user_role, nullable=False),
        sa.Column('is_banned', sa.Boolean(), server_default='false', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('last_login', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_username', 'users', ['username'])

    op.create_table(
        'issues',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('description', sa.String(length=4000), nullable=False),
        sa.Column('category', issue_category, nullable=False),
        sa.Column('status', issue_status, nullable=False),
        sa.Column('postal_code', sa.String(length=6), nullable=False),
        sa.Column('area', sa.String(length=200), nullable=True),
        sa.Column('location_address', sa.String(length=300), nullable=True),
        sa.Column('latitude', sa.Float(), nullable=True),
        sa.Column('longitude', sa.Float(), nullable=True),
        sa.Column('reporter_id', sa.String(length=36), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('is_anonymous', sa.Boolean(), server_default='false', nullable=False),
        sa.Column('is_hidden', sa.Boolean(), server_default='false', nullable=False),
        sa.Column('spam_reports', sa.Integer(), server_default='0', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_issues_title', 'issues', ['title'])
    op.create_index('ix_issues_category', 'issues', ['category'])
    op.create_index('ix_issues_status', 'issues', ['status'])
    op.create_index('ix_issues_postal_code', 'issues', ['postal_code'])
    op.create_index('ix_issues_reporter_id', 'issues', ['reporter_id'])
    op.create_index('ix_issues_is_hidden', 'issues', ['is_hidden'])
    op.create_index('ix_issues_created_at', 'issues', ['created_at'])
    op.create_index('ix_issues_postal_hidden', 'issues', ['postal_code', 'is_hidden'])

    op.create_table(
        'issue_photos',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('issue_id', sa.String(length=36), sa.ForeignKey('issues.id', ondelete='CASCADE'), nullable=False),
        sa.Column('photo_url', sa.String(length=2000), nullable=False),
        sa.Column('position', sa.Integer(), server_default='0', nullable=False),
    )
    op.create_index('ix_issue_photos_issue_id', 'issue_photos', ['issue_id'])

    op.create_table(
        'issue_activities',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('issue_id', sa.String(length=36), sa.ForeignKey('issues.id', ondelete='CASCADE'), nullable=False),
        sa.Column('action', sa.String(length=30), nullable=False),
        sa.Column('description', sa.String(length=500), nullable=False),
        sa.Column('user_id', sa.String(length=36), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_issue_activities_issue_id', 'issue_activities', ['issue_id'])
    op.create_index('ix_issue_activities_created_at', 'issue_activities', ['created_at'])

    op.create_table(
        'spam_reports',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('issue_id', sa.String(length=36), sa.ForeignKey('issues.id', ondelete='CASCADE'), nullable=False),
        sa.Column('reporter_id', sa.String(length=36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('reason', sa.String(length=500), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('issue_id', 'reporter_id', name='uq_spam_report_issue_user'),
    )
    op.create_index('ix_spam_reports_issue_id', 'spam_reports', ['issue_id'])
    op.create_index('ix_spam_reports_reporter_id', 'spam_reports', ['reporter_id'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('spam_reports')
    op.drop_table('issue_activities')
    op.drop_table('issue_photos')
    op.drop_table('issues')
    op.drop_table('users')
    issue_status.drop(op.get_bind(), checkfirst=True)
    issue_category.drop(op.get_bind(), checkfirst=True)
    user_role.drop(op.get_bind(), checkfirst=True)
