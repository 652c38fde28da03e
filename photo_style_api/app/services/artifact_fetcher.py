import asyncio
import base64
import binascii
import io
import logging
from typing import Optional

import aiohttp
from PIL import Image, UnidentifiedImageError

from ..utils.errors import FetchError
from .output_normalizer import ArtifactRef

logger = logging.getLogger(__name__)

OUTPUT_MIME = "image/png"
PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"

def to_data_url(data: bytes, mime: str = OUTPUT_MIME) -> str:
    """字节编码为 data URL"""
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"

def decode_data_url(value: str) -> bytes:
    """解码 data:<mime>;base64,<payload>"""
    header, sep, payload = value.partition(",")
    if not sep or not header.startswith("data:"):
        raise FetchError("无效的 data URI")
    try:
        if header.endswith(";base64"):
            return base64.b64decode(payload, validate=True)
        return payload.encode("utf-8")
    except (binascii.Error, ValueError) as e:
        raise FetchError(f"data URI 解码失败: {e}") from e

def ensure_png(data: bytes) -> bytes:
    """非 PNG 的输出统一转码为 PNG"""
    if data.startswith(PNG_SIGNATURE):
        return data
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            if img.mode not in ("RGB", "RGBA", "L", "LA"):
                img = img.convert("RGBA")
            buf = io.BytesIO()
            img.save(buf, format="PNG")
            return buf.getvalue()
    except (UnidentifiedImageError, OSError) as e:
        raise FetchError(f"无法识别的图像数据: {e}") from e

class ArtifactFetcher:
    """结果图像获取服务"""

    def __init__(self, timeout: float = 30, session: Optional[aiohttp.ClientSession] = None):
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.session = session
        self._owns_session = session is None

    async def __aenter__(self):
        """异步上下文管理器入口"""
        if self.session is None:
            self.session = aiohttp.ClientSession(timeout=self.timeout)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """异步上下文管理器出口"""
        if self._owns_session and self.session:
            await self.session.close()
            self.session = None

    async def download(self, url: str) -> bytes:
        """下载图像，非 2xx 视为失败"""
        if self.session is None:
            self.session = aiohttp.ClientSession(timeout=self.timeout)
        logger.debug(f"下载结果图像 {url}")
        try:
            async with self.session.get(url) as response:
                if not 200 <= response.status < 300:
                    raise FetchError(f"下载图像失败: HTTP {response.status}",
                                     details={"url": url, "status": response.status})
                return await response.read()
        except aiohttp.ClientError as e:
            raise FetchError(f"下载图像失败: {e}", details={"url": url}) from e
        except asyncio.TimeoutError as e:
            raise FetchError("下载图像超时", details={"url": url}) from e

    async def resolve(self, ref: ArtifactRef) -> str:
        """获取 ArtifactRef 指向的图像，返回统一的 PNG data URL"""
        if ref.is_inline:
            data = decode_data_url(ref.value)
        else:
            data = await self.download(ref.value)
        if not data:
            raise FetchError("结果图像为空")
        # Pillow 转码在线程中执行，避免阻塞其它子流程
        return to_data_url(await asyncio.to_thread(ensure_png, data))
