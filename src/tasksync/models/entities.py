"""Entity tables of the remote store.

``profiles`` is the identity table every other row hangs off; the remaining
nine tables are the syncable entities, declared here in dependency order.
"""

from sqlalchemy import (
    Boolean,
    Column,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from .base import Base, TimestampMixin
from .db_types import IsoTimestamp, utcnow_iso

ID_LENGTH = 36


def _id_column() -> Column:
    return Column(String(ID_LENGTH), primary_key=True)


def _owner_column() -> Column:
    return Column(
        String(ID_LENGTH),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )


class Profile(Base, TimestampMixin):
    """User identity."""

    __tablename__ = "profiles"

    id = _id_column()
    email = Column(String(320), nullable=False)
    full_name = Column(Text, nullable=True)
    avatar_url = Column(Text, nullable=True)
    role = Column(String(16), nullable=False, default="user")  # user | admin | owner


class Category(Base, TimestampMixin):
    """Top-level grouping of themes."""

    __tablename__ = "categories"

    id = _id_column()
    user_id = _owner_column()
    title = Column(Text, nullable=False)
    color_hex = Column(String(16), nullable=False, default="#6366f1")
    icon = Column(String(64), nullable=False, default="folder")
    order_index = Column(Integer, nullable=False, default=0)


class Theme(Base, TimestampMixin):
    """Theme, optionally inside a category."""

    __tablename__ = "themes"

    id = _id_column()
    user_id = _owner_column()
    category_id = Column(String(ID_LENGTH), ForeignKey("categories.id"), nullable=True)
    title = Column(Text, nullable=False)
    color_hex = Column(String(16), nullable=False, default="#6366f1")
    icon = Column(String(64), nullable=False, default="circle")
    order_index = Column(Integer, nullable=False, default=0)


class Subject(Base, TimestampMixin):
    """Subject (project) inside a theme."""

    __tablename__ = "subjects"

    id = _id_column()
    theme_id = Column(String(ID_LENGTH), ForeignKey("themes.id"), nullable=False)
    user_id = _owner_column()
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(16), nullable=False, default="active")  # active | archived
    scratchpad = Column(Text, nullable=True)
    icon = Column(String(64), nullable=False, default="file")
    order_index = Column(Integer, nullable=False, default=0)
    last_activity_at = Column(IsoTimestamp, nullable=False, default=utcnow_iso)


class Label(Base, TimestampMixin):
    """Free-form label attachable to tasks."""

    __tablename__ = "labels"

    id = _id_column()
    user_id = _owner_column()
    name = Column(Text, nullable=False)
    color_hex = Column(String(16), nullable=False, default="#64748b")


class Task(Base, TimestampMixin):
    """Task, attached to a subject, a theme or a category (waterfall)."""

    __tablename__ = "tasks"

    id = _id_column()
    subject_id = Column(String(ID_LENGTH), ForeignKey("subjects.id"), nullable=True)
    theme_id = Column(String(ID_LENGTH), ForeignKey("themes.id"), nullable=True)
    category_id = Column(String(ID_LENGTH), ForeignKey("categories.id"), nullable=True)
    user_id = _owner_column()
    parent_task_id = Column(String(ID_LENGTH), ForeignKey("tasks.id"), nullable=True)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(16), nullable=False, default="todo")  # todo | done | waiting_for
    do_date = Column(String(10), nullable=True)  # YYYY-MM-DD
    do_time = Column(String(5), nullable=True)  # HH:mm
    waiting_for_note = Column(Text, nullable=True)
    priority = Column(Integer, nullable=False, default=1)  # 0 low .. 3 urgent
    order_index = Column(Integer, nullable=False, default=0)
    snooze_count = Column(Integer, nullable=False, default=0)
    completed_at = Column(IsoTimestamp, nullable=True)


class TaskLabel(Base):
    """Join row between a task and a label."""

    __tablename__ = "task_labels"

    task_id = Column(String(ID_LENGTH), ForeignKey("tasks.id"), primary_key=True)
    label_id = Column(String(ID_LENGTH), ForeignKey("labels.id"), primary_key=True)
    created_at = Column(IsoTimestamp, nullable=False, default=utcnow_iso)


class TaskAttachment(Base):
    """File attached to a task. Immutable once created."""

    __tablename__ = "task_attachments"

    id = _id_column()
    task_id = Column(String(ID_LENGTH), ForeignKey("tasks.id"), nullable=False)
    user_id = _owner_column()
    file_name = Column(Text, nullable=False)
    file_type = Column(String(128), nullable=False)
    file_size = Column(Integer, nullable=False, default=0)
    storage_path = Column(Text, nullable=False)
    created_at = Column(IsoTimestamp, nullable=False, default=utcnow_iso)


class PendingItem(Base, TimestampMixin):
    """Something the user is waiting on, optionally tied to any level."""

    __tablename__ = "pending_items"

    id = _id_column()
    user_id = _owner_column()
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    category_id = Column(String(ID_LENGTH), ForeignKey("categories.id"), nullable=True)
    theme_id = Column(String(ID_LENGTH), ForeignKey("themes.id"), nullable=True)
    subject_id = Column(String(ID_LENGTH), ForeignKey("subjects.id"), nullable=True)
    task_id = Column(String(ID_LENGTH), ForeignKey("tasks.id"), nullable=True)
    status = Column(String(16), nullable=False, default="pending")  # pending | reminded | resolved
    reminder_date = Column(String(10), nullable=True)
    reminded_count = Column(Integer, nullable=False, default=0)
    resolved_at = Column(IsoTimestamp, nullable=True)


class UserPreferences(Base, TimestampMixin):
    """One row of UI preferences per user."""

    __tablename__ = "user_preferences"
    __table_args__ = (UniqueConstraint("user_id", name="uq_user_preferences_user"),)

    id = _id_column()
    user_id = _owner_column()
    preferred_view = Column(String(16), nullable=False, default="daily-brief")
    sidebar_collapsed = Column(Boolean, nullable=False, default=False)
    theme_mode = Column(String(8), nullable=False, default="system")
    email_digest_enabled = Column(Boolean, nullable=False, default=False)
    email_digest_time = Column(String(5), nullable=False, default="08:00")
