"""Authentication core: credentials, one-time codes, rate limits and sessions."""
from ideahub_auth.services import AuthService

__all__ = ["AuthService"]
