from .crypto import PasswordHasher

__all__ = ["PasswordHasher"]
