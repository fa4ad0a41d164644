"""Background jobs for the new-user onboarding feature."""

from .consumer import UserCreatedConsumer, start_user_onboarding_consumer

__all__ = ["UserCreatedConsumer", "start_user_onboarding_consumer"]
