import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional

from replicate_client import ReplicateClient
from ..config import Settings, settings as default_settings
from ..schemas.request import ImageUpload, TransformBackend, TransformRequest
from ..schemas.response import DroppedItem, TransformedImage, TransformResponse
from ..utils.errors import (
    BatchFailedError, ConfigurationError, EmptyOutputError, FetchError,
    PreconditionError, TransformError
)
from ..workflows.style_prompts import InputProfile, build_prediction_input, resolve_prompt
from .artifact_fetcher import ArtifactFetcher, to_data_url
from .job_poller import JobPoller
from .local_filter_service import LocalFilterService
from .output_normalizer import normalize_output

logger = logging.getLogger(__name__)

ItemPipeline = Callable[[int, ImageUpload], Awaitable[List[str]]]

@dataclass
class ItemOutcome:
    """单张输入图像的处理结果"""
    index: int
    filename: str
    images: List[TransformedImage] = field(default_factory=list)
    error: Optional[TransformError] = None

@dataclass
class BatchResult:
    """批次结果：只包含成功的图像，按输入顺序排列"""
    images: List[TransformedImage]
    dropped: List[DroppedItem]
    total_count: int

    def to_response(self) -> TransformResponse:
        return TransformResponse(
            success=True,
            images=self.images,
            total_count=self.total_count,
            dropped_count=len(self.dropped),
            dropped=self.dropped,
        )

def input_name(upload: ImageUpload, index: int) -> str:
    """原始文件名，缺失时使用 image-{序号}"""
    return upload.filename or f"image-{index + 1}"

def output_filename(upload: ImageUpload, index: int, extension: str = ".png", position: int = 0) -> str:
    """输出文件名 = 原始文件名 + 扩展名；同一任务的第2个及以后的输出追加 -2、-3..."""
    suffix = f"-{position + 1}" if position else ""
    return f"{input_name(upload, index)}{suffix}{extension}"

class BatchTransformService:
    """
    批量图像变换服务

    每张图像一个独立子流程（提交 -> 轮询 -> 归一化 -> 获取），
    单张失败只记录不影响其它图像；全部失败时整个批次失败。
    """

    def __init__(self, settings: Settings = default_settings,
                 client: Optional[ReplicateClient] = None,
                 local_filters: Optional[LocalFilterService] = None):
        self.settings = settings
        self._client = client
        self.local_filters = local_filters or LocalFilterService(settings.LOCAL_MAX_DIMENSION)

    @property
    def is_configured(self) -> bool:
        """远程后端是否有可用凭证"""
        return self._client is not None or bool(self.settings.REPLICATE_API_TOKEN)

    @property
    def input_profile(self) -> InputProfile:
        return InputProfile.IMG2IMG if self.settings.uses_model_version else InputProfile.EDIT

    def _get_client(self) -> ReplicateClient:
        """获取 Replicate 客户端，凭证缺失时在提交任何任务之前报错"""
        if self._client is None:
            if not self.settings.REPLICATE_API_TOKEN:
                raise ConfigurationError("REPLICATE_API_TOKEN 未配置")
            self._client = ReplicateClient(
                api_token=self.settings.REPLICATE_API_TOKEN,
                base_url=self.settings.REPLICATE_BASE_URL,
                timeout=self.settings.REPLICATE_REQUEST_TIMEOUT,
            )
        return self._client

    async def close(self):
        """关闭客户端连接"""
        if self._client is not None:
            await self._client.close()

    async def transform_batch(self, request: TransformRequest) -> BatchResult:
        """处理一个批次"""
        if not request.images:
            raise PreconditionError("没有上传图像（multipart 字段 photos）")

        logger.info(
            f"开始处理批次: {len(request.images)} 张图像, 后端 {request.backend.value}, "
            f"风格 {request.style.value}, 强度 {request.intensity:.2f}"
        )

        if request.backend == TransformBackend.LOCAL:
            outcomes = await self._gather(request, lambda index, upload: self._local_pipeline(upload, request))
            return self._assemble(outcomes)

        client = self._get_client()
        poller = JobPoller(
            client,
            poll_interval=self.settings.POLL_INTERVAL_SECONDS,
            timeout=self.settings.JOB_TIMEOUT_SECONDS,
        )
        async with ArtifactFetcher(timeout=self.settings.FETCH_TIMEOUT_SECONDS) as fetcher:
            outcomes = await self._gather(
                request, lambda index, upload: self._remote_pipeline(upload, request, poller, fetcher)
            )
        return self._assemble(outcomes)

    async def _gather(self, request: TransformRequest, pipeline: ItemPipeline) -> List[ItemOutcome]:
        """并发执行所有子流程，结果按输入位置写入槽位"""
        semaphore = asyncio.Semaphore(self.settings.MAX_CONCURRENT_JOBS)
        slots: List[Optional[ItemOutcome]] = [None] * len(request.images)

        async def run_slot(index: int, upload: ImageUpload):
            async with semaphore:
                slots[index] = await self._run_item(index, upload, pipeline)

        await asyncio.gather(*(run_slot(i, upload) for i, upload in enumerate(request.images)))
        return slots

    async def _run_item(self, index: int, upload: ImageUpload, pipeline: ItemPipeline) -> ItemOutcome:
        """单张图像子流程，所有错误在这里被捕获为结果"""
        name = input_name(upload, index)
        try:
            if not upload.data:
                raise PreconditionError("图像内容为空")
            data_urls = await pipeline(index, upload)
        except TransformError as e:
            logger.warning(f"图像 {index + 1} ({name}) 处理失败: [{e.error_code}] {e.message}")
            return ItemOutcome(index=index, filename=name, error=e)
        except Exception as e:
            logger.exception(f"图像 {index + 1} ({name}) 处理出现未预期错误: {e}")
            return ItemOutcome(index=index, filename=name, error=TransformError(str(e) or type(e).__name__))

        images = [
            TransformedImage(
                filename=output_filename(upload, index, self.settings.OUTPUT_EXTENSION, position),
                data_url=data_url,
            )
            for position, data_url in enumerate(data_urls)
        ]
        logger.info(f"图像 {index + 1} ({name}) 处理完成, 输出 {len(images)} 张")
        return ItemOutcome(index=index, filename=name, images=images)

    async def _remote_pipeline(self, upload: ImageUpload, request: TransformRequest,
                               poller: JobPoller, fetcher: ArtifactFetcher) -> List[str]:
        """提交 -> 轮询 -> 归一化 -> 获取每个输出"""
        profile = self.input_profile
        prompt = resolve_prompt(request.style, request.prompt_override, profile)
        mime = upload.content_type if (upload.content_type or "").startswith("image/") else "image/png"
        prediction_input = build_prediction_input(to_data_url(upload.data, mime), prompt, request.intensity, profile)

        if profile == InputProfile.IMG2IMG:
            handle = await poller.submit(prediction_input, version=self.settings.REPLICATE_MODEL_VERSION)
        else:
            handle = await poller.submit(prediction_input, model=self.settings.REPLICATE_MODEL)
        raw_output = await poller.wait(handle)

        refs = normalize_output(raw_output)
        if not refs:
            raise EmptyOutputError("模型返回为空", details={"job_id": handle.id})

        data_urls = []
        last_error: Optional[FetchError] = None
        for ref in refs:
            try:
                data_urls.append(await fetcher.resolve(ref))
            except FetchError as e:
                logger.error(f"任务 {handle.id} 获取输出失败: {e.message}")
                last_error = e
        if not data_urls:
            raise last_error
        return data_urls

    async def _local_pipeline(self, upload: ImageUpload, request: TransformRequest) -> List[str]:
        """本地滤镜，在线程中执行避免阻塞事件循环"""
        png = await asyncio.to_thread(self.local_filters.transform, upload.data, request.style, request.intensity)
        return [to_data_url(png)]

    def _assemble(self, outcomes: List[ItemOutcome]) -> BatchResult:
        """按输入顺序合并结果，丢弃失败项"""
        for outcome in outcomes:
            if isinstance(outcome.error, ConfigurationError):
                raise outcome.error

        images = [image for outcome in outcomes if outcome.error is None for image in outcome.images]
        dropped = [
            DroppedItem(
                index=outcome.index,
                filename=outcome.filename,
                error_code=outcome.error.error_code,
                message=outcome.error.message,
            )
            for outcome in outcomes if outcome.error is not None
        ]

        if not images:
            summary = "; ".join(f"[{item.index + 1}] {item.filename}: {item.message}" for item in dropped)
            logger.error(f"批次失败: 全部 {len(outcomes)} 张图像处理失败")
            raise BatchFailedError(
                f"全部 {len(outcomes)} 张图像处理失败: {summary}",
                details={"failures": [item.model_dump() for item in dropped]},
            )

        if dropped:
            logger.warning(f"批次部分成功: 成功 {len(outcomes) - len(dropped)} 张, 丢弃 {len(dropped)} 张")
        else:
            logger.info(f"批次完成: {len(outcomes)} 张全部成功")
        return BatchResult(images=images, dropped=dropped, total_count=len(outcomes))

# 全局服务实例
batch_transform_service = BatchTransformService()
