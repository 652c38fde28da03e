import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

import aiohttp

from replicate_client import AuthError, ReplicateAPIError, ReplicateClient
from ..utils.errors import ConfigurationError, JobFailedError, JobSubmissionError, JobTimeoutError

logger = logging.getLogger(__name__)

class JobStatus(str, Enum):
    """远程任务状态枚举"""
    STARTING = "starting"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.SUCCEEDED, JobStatus.FAILED)

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["JobStatus"]:
        """未知状态返回 None（按非终态继续轮询），canceled/aborted 视为失败"""
        if value in ("canceled", "aborted"):
            return cls.FAILED
        try:
            return cls(value)
        except ValueError:
            return None

@dataclass(frozen=True)
class JobHandle:
    """已提交的远程任务"""
    id: str
    created_at: float
    model: str = ""

class JobPoller:
    """
    单个远程任务的提交与轮询

    超时从任务创建时刻计算，而不是从最后一次轮询开始；超时只停止本地等待，
    远程任务不会被取消。
    """

    def __init__(self, client: ReplicateClient, poll_interval: float = 1.5, timeout: float = 120,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        self.client = client
        self.poll_interval = poll_interval
        self.timeout = timeout
        self._clock = clock
        self._sleep = sleep

    async def submit(self, input: Dict[str, Any], version: Optional[str] = None,
                     model: Optional[str] = None) -> JobHandle:
        """提交任务并返回 JobHandle"""
        try:
            prediction = await self.client.predictions.create(input, version=version, model=model)
        except AuthError as e:
            raise ConfigurationError(f"Replicate 拒绝了凭证: {e.message}") from e
        except ReplicateAPIError as e:
            raise JobSubmissionError(f"创建任务失败: {e.message}", details={"status": e.status}) from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise JobSubmissionError(f"创建任务失败: {e}") from e

        job_id = prediction.get("id") if isinstance(prediction, dict) else None
        if not job_id:
            raise JobSubmissionError("未获取到任务ID")

        handle = JobHandle(id=job_id, created_at=self._clock(), model=version or model or "")
        logger.info(f"任务 {job_id} 提交成功 (模型 {handle.model})，状态: {prediction.get('status')}")
        return handle

    async def _fetch_status(self, handle: JobHandle) -> Optional[dict]:
        """查询一次状态；可重试的错误返回 None"""
        try:
            return await self.client.predictions.get(handle.id)
        except AuthError as e:
            raise ConfigurationError(f"Replicate 拒绝了凭证: {e.message}") from e
        except ReplicateAPIError as e:
            if not e.is_transient:
                raise JobFailedError(f"查询任务状态失败: {e.message}",
                                     details={"job_id": handle.id, "status": e.status}) from e
            logger.warning(f"轮询任务 {handle.id} 状态出错, 重试: {e}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"轮询任务 {handle.id} 状态出错, 重试: {e!r}")
        return None

    async def wait(self, handle: JobHandle) -> Any:
        """
        轮询直到终态

        succeeded 返回原始 output；failed 抛出 JobFailedError；
        超过 timeout 抛出 JobTimeoutError。
        """
        last_status = None
        while True:
            remaining = self._remaining(handle)
            if remaining <= 0:
                raise self._timeout_error(handle)

            # 单次状态查询同样受截止时间约束
            try:
                prediction = await asyncio.wait_for(self._fetch_status(handle), remaining)
            except asyncio.TimeoutError:
                raise self._timeout_error(handle) from None

            if prediction is not None:
                raw_status = prediction.get("status")
                status = JobStatus.parse(raw_status)
                if raw_status != last_status:
                    logger.info(f"任务 {handle.id} ({handle.model}) 状态: {raw_status}")
                    last_status = raw_status

                if status == JobStatus.SUCCEEDED:
                    return prediction.get("output")
                if status == JobStatus.FAILED:
                    error = prediction.get("error") or "Replicate 任务失败"
                    raise JobFailedError(str(error), details={"job_id": handle.id, "status": raw_status})

            remaining = self._remaining(handle)
            if remaining <= 0:
                raise self._timeout_error(handle)
            await self._sleep(min(self.poll_interval, remaining))

    def _remaining(self, handle: JobHandle) -> float:
        return self.timeout - (self._clock() - handle.created_at)

    def _timeout_error(self, handle: JobHandle) -> JobTimeoutError:
        elapsed = self._clock() - handle.created_at
        logger.error(f"任务 {handle.id} 轮询超时 ({elapsed:.1f}s)，远程任务未取消")
        return JobTimeoutError(
            f"任务超时（{self.timeout:g}秒）",
            details={"job_id": handle.id, "elapsed": round(elapsed, 1)}
        )
