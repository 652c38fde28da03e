"""
变换流程中的异常类型

批次级错误（配置、前置条件、全部失败）直接映射为HTTP错误响应；
单张图像级错误在子流程边界被捕获并记录，不会中断整个批次。
"""

from typing import Optional


class TransformError(Exception):
    """变换错误基类"""

    error_code = "TRANSFORM_ERROR"
    http_status = 500

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ConfigurationError(TransformError):
    """凭证缺失或被拒绝，整个批次失败"""
    error_code = "CONFIGURATION_ERROR"
    http_status = 500


class PreconditionError(TransformError):
    """输入不满足前置条件"""
    error_code = "PRECONDITION_FAILED"
    http_status = 400


class PayloadTooLargeError(PreconditionError):
    """上传文件超过大小限制"""
    http_status = 413


class JobSubmissionError(TransformError):
    """远程服务拒绝创建任务"""
    error_code = "JOB_SUBMISSION_FAILED"
    http_status = 502


class JobFailedError(TransformError):
    """远程任务以 failed 状态结束"""
    error_code = "JOB_FAILED"
    http_status = 502


class JobTimeoutError(TransformError):
    """本地轮询超时（远程任务不会被取消）"""
    error_code = "JOB_TIMEOUT"
    http_status = 504


class EmptyOutputError(TransformError):
    """任务成功但没有可用的输出"""
    error_code = "EMPTY_MODEL_RESPONSE"
    http_status = 502


class FetchError(TransformError):
    """结果图像获取失败"""
    error_code = "FETCH_FAILED"
    http_status = 502


class BatchFailedError(TransformError):
    """批次中所有图像都失败"""
    error_code = "BATCH_FAILED"
    http_status = 502
