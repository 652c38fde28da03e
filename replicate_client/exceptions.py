from typing import Optional


class ReplicateAPIError(Exception):
    """
    Replicate 返回非 2xx 响应时抛出。
    """
    def __init__(self, status: int, message: str, payload: Optional[dict] = None):
        super().__init__(f"Replicate API 错误 {status}: {message}")
        self.status = status
        self.message = message
        self.payload = payload or {}

    @property
    def is_transient(self) -> bool:
        """限流和服务端错误可以在下一次轮询时重试"""
        return self.status == 429 or self.status >= 500


class AuthError(ReplicateAPIError):
    """
    凭证缺失或被拒绝 (401/403)。
    """
    def __init__(self, message: str = "Replicate 凭证缺失或无效", status: int = 401,
                 payload: Optional[dict] = None):
        super().__init__(status, message, payload)
