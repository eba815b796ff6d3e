"""Application service interfaces"""
from .unit_of_work import UnitOfWork
from .notification_service import NotificationService

__all__ = [
    "UnitOfWork",
    "NotificationService",
]
