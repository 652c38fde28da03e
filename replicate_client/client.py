import aiohttp

from .utils.logger import get_logger
from .endpoints.predictions import PredictionsAPI
from .exceptions import AuthError, ReplicateAPIError

DEFAULT_BASE_URL = "https://api.replicate.com/v1"

class ReplicateClient:
    """
    用于与 Replicate predictions API 交互的异步客户端。

    只负责传输：每个方法对应一次网络往返，不做任何重试，
    重试与超时策略由调用方（轮询器）决定。
    """
    def __init__(self, api_token: str, base_url: str = DEFAULT_BASE_URL, timeout: float = 30):
        if not api_token:
            raise AuthError("未提供 Replicate API 令牌")
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.logger = get_logger()

        # 请求头部信息
        self.headers = {
            "Authorization": f"Bearer {api_token}",
            "Content-Type": "application/json",
        }

        # 创建 aiohttp 会话（延迟到第一次请求）
        self._session: aiohttp.ClientSession | None = None

        # 初始化 API 端点模块
        self.predictions = PredictionsAPI(self)

        self.logger.info(f"ReplicateClient 已为 {self.base_url} 初始化")

    async def _ensure_session(self):
        """确保 aiohttp 会话已创建"""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(headers=self.headers, timeout=self.timeout)

    async def _request(self, method: str, endpoint: str, json_data=None, params=None):
        """
        统一异步 HTTP 请求处理方法。

        401/403 抛出 AuthError，其余非 2xx 抛出 ReplicateAPIError；
        网络错误按 aiohttp 原样向上传递。
        """
        await self._ensure_session()
        url = f"{self.base_url}{endpoint}"
        self.logger.debug(f"发送 {method} 请求到 {url}")

        async with self._session.request(method, url, json=json_data, params=params) as resp:
            if resp.status >= 400:
                payload, message = await self._read_error(resp)
                self.logger.error(f"API 请求失败: {method} {endpoint} -> {resp.status} {message}")
                if resp.status in (401, 403):
                    raise AuthError(message, status=resp.status, payload=payload)
                raise ReplicateAPIError(resp.status, message, payload)
            return await resp.json(content_type=None)

    @staticmethod
    async def _read_error(resp: aiohttp.ClientResponse):
        """提取错误详情，Replicate 通常返回 {"detail": ...}"""
        text = await resp.text()
        try:
            payload = await resp.json(content_type=None)
        except ValueError:
            return {}, text[:500] or resp.reason or ""
        if isinstance(payload, dict):
            return payload, str(payload.get("detail") or payload.get("title") or text[:500])
        return {}, text[:500]

    async def close(self):
        """关闭 aiohttp 会话"""
        if self._session and not self._session.closed:
            await self._session.close()
        self.logger.info("ReplicateClient 已关闭")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
