from .session_cleanup import SessionCleanupService

__all__ = ["SessionCleanupService"]
