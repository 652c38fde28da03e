import logging
import time
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from .config import settings
from .api.transform import router as transform_router
from .services import batch_service
from .schemas.response import ErrorResponse
from .utils.errors import TransformError

# 配置日志
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format=settings.LOG_FORMAT
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    logger.info("启动图像风格变换API服务...")
    if not settings.REPLICATE_API_TOKEN:
        logger.warning("REPLICATE_API_TOKEN 未配置，remote 后端的请求将返回配置错误")
    try:
        yield
    finally:
        # 关闭Replicate客户端
        logger.info("关闭服务...")
        await batch_service.batch_transform_service.close()
        logger.info("服务已关闭")

# 创建FastAPI应用
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="基于Replicate的批量图像风格变换API服务",
    lifespan=lifespan,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None
)

# 添加CORS中间件
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 注册路由
app.include_router(transform_router)

@app.get("/")
async def root():
    """根路径"""
    return {
        "message": "图像风格变换API服务",
        "version": settings.APP_VERSION,
        "status": "running"
    }

@app.get("/health")
async def health_check():
    """健康检查（不访问Replicate）"""
    return {
        "ok": True,
        "status": "healthy",
        "backend": settings.TRANSFORM_BACKEND,
        "model": settings.model_label,
        "replicate_configured": batch_service.batch_transform_service.is_configured,
        "ts": int(time.time() * 1000)
    }

@app.exception_handler(TransformError)
async def transform_exception_handler(request: Request, exc: TransformError):
    """变换错误统一转换为 ErrorResponse"""
    logger.error(f"请求 {request.url.path} 失败: [{exc.error_code}] {exc.message}")
    return JSONResponse(
        status_code=exc.http_status,
        content=ErrorResponse(
            error_code=exc.error_code,
            error_message=exc.message,
            details=exc.details
        ).model_dump()
    )

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """全局异常处理"""
    logger.error(f"未处理的异常: {exc}", exc_info=True)

    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error_code="INTERNAL_SERVER_ERROR",
            error_message="服务器内部错误",
            details={"path": str(request.url.path)}
        ).model_dump()
    )

def run_server():
    """运行服务器"""
    uvicorn.run(
        "photo_style_api.app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        workers=settings.WORKERS,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )

if __name__ == "__main__":
    run_server()
