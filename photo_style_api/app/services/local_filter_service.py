import io
import logging
from typing import Callable, Dict

from PIL import Image, ImageEnhance, ImageFilter, ImageOps, UnidentifiedImageError

from ..schemas.request import StyleType, clamp_intensity
from ..utils.errors import PreconditionError

logger = logging.getLogger(__name__)

def _linear(img: Image.Image, a: float, b: float) -> Image.Image:
    lut = [min(255, max(0, int(round(a * v + b)))) for v in range(256)]
    return img.point(lut * len(img.getbands()))

def _modulate(img: Image.Image, brightness: float = 1.0, saturation: float = 1.0) -> Image.Image:
    if brightness != 1.0:
        img = ImageEnhance.Brightness(img).enhance(brightness)
    if saturation != 1.0:
        img = ImageEnhance.Color(img).enhance(saturation)
    return img

def _pencil(img: Image.Image, i: float) -> Image.Image:
    gray = ImageOps.grayscale(img).convert("RGB")
    return _linear(gray, 1 + i * 0.2, -20 * i)

def _watercolor(img: Image.Image, i: float) -> Image.Image:
    img = _modulate(img, saturation=0.8 - i * 0.4)
    return img.filter(ImageFilter.GaussianBlur(radius=0.8 * i + 0.3))

def _oil(img: Image.Image, i: float) -> Image.Image:
    img = _modulate(img, brightness=1 + 0.05 * i, saturation=0.9)
    return img.filter(ImageFilter.SHARPEN)

def _colored_pencils(img: Image.Image, i: float) -> Image.Image:
    return _modulate(img, brightness=1 + 0.05 * i, saturation=1 + 0.3 * i)

def _markers(img: Image.Image, i: float) -> Image.Image:
    return img

def _photo_real(img: Image.Image, i: float) -> Image.Image:
    img = img.filter(ImageFilter.SHARPEN)
    return _modulate(img, brightness=1 + 0.05 * i, saturation=1 + 0.1 * i)

STYLE_FILTERS: Dict[StyleType, Callable[[Image.Image, float], Image.Image]] = {
    StyleType.PENCIL: _pencil,
    StyleType.WATERCOLOR: _watercolor,
    StyleType.OIL: _oil,
    StyleType.COLORED_PENCILS: _colored_pencils,
    StyleType.MARKERS: _markers,
    StyleType.PHOTO_REAL: _photo_real,
}

class LocalFilterService:
    """本地像素滤镜（不调用任何远程服务）"""

    def __init__(self, max_dimension: int = 2000):
        self.max_dimension = max_dimension

    def _limit_size(self, img: Image.Image) -> Image.Image:
        """最长边超过上限时等比缩小"""
        width, height = img.size
        long_edge = max(width, height)
        if self.max_dimension <= 0 or long_edge <= self.max_dimension:
            return img
        scale = self.max_dimension / long_edge
        new_size = (max(1, round(width * scale)), max(1, round(height * scale)))
        return img.resize(new_size, Image.LANCZOS)

    def transform(self, data: bytes, style: StyleType, intensity: float) -> bytes:
        """图像字节 + 风格 + 强度 -> PNG 字节"""
        intensity = clamp_intensity(intensity)
        try:
            with Image.open(io.BytesIO(data)) as src:
                img = src.convert("RGBA")
        except (UnidentifiedImageError, OSError) as e:
            raise PreconditionError(f"无法解析图像: {e}") from e

        img = self._limit_size(img)
        alpha = img.getchannel("A")
        rgb = STYLE_FILTERS.get(style, _photo_real)(img.convert("RGB"), intensity)
        rgb.putalpha(alpha)

        buf = io.BytesIO()
        rgb.save(buf, format="PNG")
        logger.debug(f"本地滤镜完成: style={style.value} intensity={intensity:.2f} size={img.size}")
        return buf.getvalue()
