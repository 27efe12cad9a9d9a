"""Notification sink shared by matching, chat, events and study groups."""

from .service import Notification, NotificationRepository, NotificationService

__all__ = ["Notification", "NotificationRepository", "NotificationService"]
