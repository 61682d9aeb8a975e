"""
コアサービス
"""

from .waitlist_manager import WaitlistManager
from .notification_dispatcher import NotificationDispatcher

__all__ = [
    "WaitlistManager",
    "NotificationDispatcher",
]
