"""init

Revision ID: 0001_init
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def _id() -> sa.Column:
  return sa.Column("id", sa.String(length=36), primary_key=True)


def _fk(name: str, target: str, *, nullable: bool = False, ondelete: str | None = "CASCADE") -> sa.Column:
  return sa.Column(name, sa.String(length=36), sa.ForeignKey(target, ondelete=ondelete), nullable=nullable)


def _timestamps(*, updated: bool = True) -> list[sa.Column]:
  cols = [sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)]
  if updated:
    cols.append(sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False))
  return cols


def upgrade() -> None:
  op.create_table(
    "users",
    _id(),
    sa.Column("email", sa.String(), nullable=False),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("password_hash", sa.String(), nullable=False),
    sa.Column("avatar_url", sa.String(), nullable=True),
    *_timestamps(),
  )
  op.create_index("ix_users_email", "users", ["email"], unique=True)

  op.create_table(
    "boards",
    _id(),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("description", sa.Text(), nullable=False, server_default=""),
    sa.Column("color", sa.String(), nullable=True),
    _fk("owner_id", "users.id"),
    *_timestamps(),
  )
  op.create_index("ix_boards_owner_id", "boards", ["owner_id"], unique=False)

  op.create_table(
    "board_members",
    _id(),
    _fk("board_id", "boards.id"),
    _fk("user_id", "users.id"),
    sa.Column("role", sa.String(), nullable=False),
    *_timestamps(updated=False),
    sa.UniqueConstraint("board_id", "user_id", name="ux_board_member_board_user"),
  )
  op.create_index("ix_board_members_board_id", "board_members", ["board_id"], unique=False)
  op.create_index("ix_board_members_user_id", "board_members", ["user_id"], unique=False)

  op.create_table(
    "invitations",
    _id(),
    _fk("board_id", "boards.id"),
    _fk("inviter_id", "users.id"),
    sa.Column("invitee_email", sa.String(), nullable=False),
    sa.Column("status", sa.String(), nullable=False),
    *_timestamps(),
  )
  op.create_index("ix_invitations_board_id", "invitations", ["board_id"], unique=False)
  op.create_index("ix_invitations_invitee_email", "invitations", ["invitee_email"], unique=False)

  op.create_table(
    "columns",
    _id(),
    _fk("board_id", "boards.id"),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("position", sa.Integer(), nullable=False),
    *_timestamps(),
  )
  op.create_index("ix_columns_board_position", "columns", ["board_id", "position"], unique=False)

  op.create_table(
    "cards",
    _id(),
    _fk("column_id", "columns.id"),
    sa.Column("title", sa.String(), nullable=False),
    sa.Column("description", sa.Text(), nullable=False, server_default=""),
    sa.Column("priority", sa.String(), nullable=False, server_default="medium"),
    sa.Column("due_date", sa.Date(), nullable=True),
    sa.Column("tags", sa.JSON(), nullable=False),
    sa.Column("color", sa.String(), nullable=True),
    _fk("assignee_id", "users.id", nullable=True, ondelete="SET NULL"),
    _fk("created_by", "users.id", ondelete=None),
    sa.Column("position", sa.Integer(), nullable=False),
    *_timestamps(),
  )
  op.create_index("ix_cards_column_position", "cards", ["column_id", "position"], unique=False)
  op.create_index("ix_cards_assignee_id", "cards", ["assignee_id"], unique=False)

  op.create_table(
    "comments",
    _id(),
    _fk("card_id", "cards.id"),
    _fk("author_id", "users.id"),
    sa.Column("content", sa.Text(), nullable=False),
    *_timestamps(),
  )
  op.create_index("ix_comments_card_id", "comments", ["card_id"], unique=False)

  op.create_table(
    "attachments",
    _id(),
    _fk("card_id", "cards.id"),
    _fk("uploader_id", "users.id"),
    sa.Column("filename", sa.String(), nullable=False),
    sa.Column("original_name", sa.String(), nullable=False),
    sa.Column("size_bytes", sa.Integer(), nullable=False),
    sa.Column("mime", sa.String(), nullable=False),
    *_timestamps(updated=False),
  )
  op.create_index("ix_attachments_card_id", "attachments", ["card_id"], unique=False)

  op.create_table(
    "audit_events",
    _id(),
    sa.Column("board_id", sa.String(length=36), nullable=True),
    sa.Column("actor_id", sa.String(length=36), nullable=True),
    sa.Column("event_type", sa.String(), nullable=False),
    sa.Column("entity_type", sa.String(), nullable=False),
    sa.Column("entity_id", sa.String(), nullable=True),
    sa.Column("payload", sa.JSON(), nullable=False),
    *_timestamps(updated=False),
  )
  op.create_index("ix_audit_events_board_id", "audit_events", ["board_id"], unique=False)


def downgrade() -> None:
  op.drop_table("audit_events")
  op.drop_table("attachments")
  op.drop_table("comments")
  op.drop_table("cards")
  op.drop_table("columns")
  op.drop_table("invitations")
  op.drop_table("board_members")
  op.drop_table("boards")
  op.drop_table("users")
