"""Database models."""

from .base import Base
from .entities import (
    Category,
    Label,
    PendingItem,
    Profile,
    Subject,
    Task,
    TaskAttachment,
    TaskLabel,
    Theme,
    UserPreferences,
)

__all__ = [
    "Base",
    "Profile",
    "Category",
    "Theme",
    "Subject",
    "Label",
    "Task",
    "TaskLabel",
    "TaskAttachment",
    "PendingItem",
    "UserPreferences",
]
