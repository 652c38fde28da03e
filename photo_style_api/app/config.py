from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from pathlib import Path

class Settings(BaseSettings):
    """应用配置"""

    model_config = SettingsConfigDict(
        env_file=Path(__file__).resolve().parent.parent / ".env",  # 绝对路径
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # 应用基本配置
    APP_NAME: str = Field(default="Photo Style Transform API", description="应用名称")
    APP_VERSION: str = Field(default="1.0.0", description="应用版本")
    DEBUG: bool = Field(default=False, description="调试模式")

    # 服务器配置
    HOST: str = Field(default="0.0.0.0", description="服务器地址")
    PORT: int = Field(default=3001, description="服务器端口")
    WORKERS: int = Field(default=1, description="工作进程数")

    # Replicate配置
    REPLICATE_API_TOKEN: Optional[str] = Field(default=None, description="Replicate API令牌")
    REPLICATE_BASE_URL: str = Field(
        default="https://api.replicate.com/v1",
        description="Replicate API地址"
    )
    REPLICATE_MODEL: str = Field(default="google/nano-banana", description="模型ID（owner/name）")
    REPLICATE_MODEL_VERSION: Optional[str] = Field(
        default=None,
        description="模型版本ID，设置后使用img2img输入格式"
    )
    REPLICATE_REQUEST_TIMEOUT: float = Field(default=30, description="单次API请求超时时间（秒）")

    # 轮询配置
    POLL_INTERVAL_SECONDS: float = Field(default=1.5, gt=0, description="轮询间隔（秒）")
    JOB_TIMEOUT_SECONDS: float = Field(default=120, gt=0, description="单个任务超时时间（秒）")
    MAX_CONCURRENT_JOBS: int = Field(default=4, ge=1, description="每批最大并发任务数")

    # 下载配置
    FETCH_TIMEOUT_SECONDS: float = Field(default=30, description="结果图像下载超时时间（秒）")

    # 变换配置
    TRANSFORM_BACKEND: str = Field(default="remote", pattern="^(remote|local)$", description="默认后端")
    DEFAULT_STYLE: str = Field(default="photo_real", description="默认风格")
    DEFAULT_INTENSITY: float = Field(default=0.7, ge=0.0, le=1.0, description="默认强度")
    OUTPUT_EXTENSION: str = Field(default=".png", description="输出文件扩展名")
    MAX_FILE_SIZE: int = Field(default=25 * 1024 * 1024, description="单个文件最大大小（字节）")
    LOCAL_MAX_DIMENSION: int = Field(default=2000, description="本地处理时最长边上限（像素）")

    # 日志配置
    LOG_LEVEL: str = Field(default="INFO", description="日志级别")
    LOG_FORMAT: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="日志格式"
    )

    # 安全配置
    CORS_ORIGINS: list = Field(
        default=["*"],
        description="CORS允许的源"
    )

    @property
    def uses_model_version(self) -> bool:
        """是否按版本ID提交（img2img输入格式）"""
        return bool(self.REPLICATE_MODEL_VERSION)

    @property
    def model_label(self) -> str:
        return self.REPLICATE_MODEL_VERSION or self.REPLICATE_MODEL

# 创建全局配置实例
settings = Settings()

def get_settings() -> Settings:
    """获取配置实例"""
    return settings
