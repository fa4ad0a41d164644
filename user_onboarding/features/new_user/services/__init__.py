"""Services for the new-user onboarding feature."""

from user_onboarding.features.new_user.services.notification_service import (
    NotificationService,
    NotificationTemplateError,
)

__all__ = ["NotificationService", "NotificationTemplateError"]
