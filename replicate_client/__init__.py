"""
Replicate predictions API 的异步客户端。
"""

from .client import ReplicateClient, DEFAULT_BASE_URL
from .exceptions import AuthError, ReplicateAPIError

__all__ = [
    "ReplicateClient",
    "DEFAULT_BASE_URL",
    "AuthError",
    "ReplicateAPIError",
]
