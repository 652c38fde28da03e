from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List

class TransformedImage(BaseModel):
    """单张变换结果"""
    model_config = ConfigDict(populate_by_name=True)

    filename: str = Field(..., description="输出文件名")
    data_url: str = Field(..., alias="dataUrl", description="data:image/png;base64,... 形式的图像")

class DroppedItem(BaseModel):
    """被丢弃的输入图像"""
    index: int = Field(..., description="输入中的位置（从0开始）")
    filename: str = Field(..., description="输入文件名")
    error_code: str = Field(..., description="错误代码")
    message: str = Field(..., description="错误信息")

class TransformResponse(BaseModel):
    """批量变换响应模型"""
    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "success": True,
                "images": [
                    {"filename": "cat.jpg.png", "dataUrl": "data:image/png;base64,iVBORw0KGgo..."}
                ],
                "total_count": 2,
                "dropped_count": 1,
                "dropped": [
                    {"index": 1, "filename": "dog.jpg", "error_code": "JOB_FAILED", "message": "NSFW content detected"}
                ]
            }
        },
    )

    success: bool = Field(True, description="是否成功")
    images: List[TransformedImage] = Field(..., description="成功的结果，保持输入顺序")
    total_count: int = Field(..., description="输入图像数量")
    dropped_count: int = Field(0, description="失败被丢弃的数量")
    dropped: List[DroppedItem] = Field(default_factory=list, description="失败明细")

class ErrorResponse(BaseModel):
    """错误响应模型"""
    success: bool = Field(False, description="是否成功")
    error_code: str = Field(..., description="错误代码")
    error_message: str = Field(..., description="错误信息")
    details: Optional[dict] = Field(None, description="详细信息")
