"""
Pydantic数据模型

定义API请求和响应的数据结构。
"""

from .request import (
    TransformRequest, ImageUpload, StyleType, TransformBackend,
    parse_style, clamp_intensity, parse_backend
)
from .response import (
    TransformResponse, TransformedImage, DroppedItem, ErrorResponse
)

__all__ = [
    "TransformRequest",
    "ImageUpload",
    "StyleType",
    "TransformBackend",
    "parse_style",
    "clamp_intensity",
    "parse_backend",
    "TransformResponse",
    "TransformedImage",
    "DroppedItem",
    "ErrorResponse"
]
