from .notification_manager import (
    NotificationManager,
    marketplace_display_name,
    render_message,
)

__all__ = ["NotificationManager", "marketplace_display_name", "render_message"]
