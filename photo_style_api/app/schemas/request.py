import logging
import math
from pydantic import BaseModel, Field
from typing import List, Optional, Union
from enum import Enum

logger = logging.getLogger(__name__)

DEFAULT_STYLE = "photo_real"
DEFAULT_INTENSITY = 0.7

class StyleType(str, Enum):
    """风格类型枚举"""
    PENCIL = "pencil"
    WATERCOLOR = "watercolor"
    OIL = "oil"
    COLORED_PENCILS = "colored_pencils"
    MARKERS = "markers"
    PHOTO_REAL = "photo_real"

class TransformBackend(str, Enum):
    """变换后端"""
    REMOTE = "remote"
    LOCAL = "local"

class ImageUpload(BaseModel):
    """单张上传图像"""
    data: bytes = Field(..., description="图像原始字节")
    filename: Optional[str] = Field(None, description="原始文件名")
    content_type: Optional[str] = Field(None, description="MIME类型")

class TransformRequest(BaseModel):
    """批量图像风格变换请求模型"""
    images: List[ImageUpload] = Field(default_factory=list, description="按上传顺序排列的图像")
    style: StyleType = Field(default=StyleType.PHOTO_REAL, description="风格类型")
    prompt: Optional[str] = Field(None, description="自定义提示词，非空时覆盖风格提示词")
    intensity: float = Field(DEFAULT_INTENSITY, ge=0.0, le=1.0, description="变换强度")
    backend: TransformBackend = Field(default=TransformBackend.REMOTE, description="变换后端")

    @property
    def prompt_override(self) -> Optional[str]:
        """去除首尾空白后的自定义提示词，空字符串视为未提供"""
        if self.prompt is None:
            return None
        return self.prompt.strip() or None

def parse_style(value: Optional[str], default: str = DEFAULT_STYLE) -> StyleType:
    """
    解析风格标签

    未知风格不报错，回退到默认风格。
    """
    if not value:
        return StyleType(default)
    try:
        return StyleType(value.strip().lower())
    except ValueError:
        logger.warning(f"未知风格 {value!r}，使用默认风格 {default}")
        return StyleType(default)

def clamp_intensity(value: Union[str, float, None], default: float = DEFAULT_INTENSITY) -> float:
    """解析并裁剪强度到 [0, 1]，无法解析时使用默认值"""
    if value is None or value == "":
        return default
    try:
        intensity = float(value)
    except (TypeError, ValueError):
        logger.warning(f"无法解析强度 {value!r}，使用默认值 {default}")
        return default
    if math.isnan(intensity):
        return default
    return min(max(intensity, 0.0), 1.0)

def parse_backend(value: Optional[str], default: str = TransformBackend.REMOTE.value) -> TransformBackend:
    """解析后端选择，未知值回退到默认后端"""
    if not value:
        return TransformBackend(default)
    try:
        return TransformBackend(value.strip().lower())
    except ValueError:
        logger.warning(f"未知后端 {value!r}，使用 {default}")
        return TransformBackend(default)
