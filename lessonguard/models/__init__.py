"""
SQLAlchemy models for the content protection service.
"""
from lessonguard.models.user import User, UserRole, SubscriptionStatus
from lessonguard.models.lesson import Lesson, LessonType
from lessonguard.models.user_device import UserDevice
from lessonguard.models.audit import SuspiciousActivity, ContentAccessLog

__all__ = [
    "User",
    "UserRole",
    "SubscriptionStatus",
    "Lesson",
    "LessonType",
    "UserDevice",
    "SuspiciousActivity",
    "ContentAccessLog",
]
