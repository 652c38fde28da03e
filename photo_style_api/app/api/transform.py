import logging
from typing import List, Optional
from fastapi import APIRouter, File, Form, UploadFile

from ..config import settings
from ..schemas.request import (
    ImageUpload, TransformRequest, clamp_intensity, parse_backend, parse_style
)
from ..schemas.response import TransformResponse, ErrorResponse
from ..services import batch_service
from ..utils.errors import PayloadTooLargeError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["图像变换"])

async def read_uploads(photos: Optional[List[UploadFile]]) -> List[ImageUpload]:
    """读取上传文件，超过大小限制时拒绝整个请求"""
    uploads = []
    for photo in photos or []:
        data = await photo.read()
        if len(data) > settings.MAX_FILE_SIZE:
            raise PayloadTooLargeError(
                f"文件 {photo.filename} 超过大小限制 {settings.MAX_FILE_SIZE} 字节",
                details={"filename": photo.filename, "size": len(data)}
            )
        uploads.append(ImageUpload(data=data, filename=photo.filename or None, content_type=photo.content_type))
    return uploads

@router.post(
    "/transform",
    response_model=TransformResponse,
    responses={
        400: {"model": ErrorResponse},
        413: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
)
async def transform_images(
    photos: Optional[List[UploadFile]] = File(None),
    style: Optional[str] = Form(None),
    prompt: Optional[str] = Form(None),
    intensity: Optional[str] = Form(None),
    backend: Optional[str] = Form(None),
):
    """
    批量图像风格变换

    - **photos**: 图像文件（multipart，可重复）
    - **style**: 风格类型，未知风格回退到默认风格
    - **prompt**: 自定义提示词（可选，非空时覆盖风格提示词）
    - **intensity**: 变换强度（0-1，超出范围会被裁剪）
    - **backend**: remote 或 local
    """
    request = TransformRequest(
        images=await read_uploads(photos),
        style=parse_style(style, settings.DEFAULT_STYLE),
        prompt=prompt,
        intensity=clamp_intensity(intensity, settings.DEFAULT_INTENSITY),
        backend=parse_backend(backend, settings.TRANSFORM_BACKEND),
    )

    result = await batch_service.batch_transform_service.transform_batch(request)
    return result.to_response()
