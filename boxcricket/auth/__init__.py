"""
Authentication module for JWT bearer tokens
"""
from boxcricket.auth.utils import get_current_user_ref, create_access_token, verify_token

__all__ = [
    "get_current_user_ref",
    "create_access_token",
    "verify_token",
]
