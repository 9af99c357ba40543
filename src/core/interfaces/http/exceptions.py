"""HTTP exception handlers.

提供统一的异常处理机制，将领域异常转换为标准 HTTP 响应：

    {"error": {"code": "<ERROR_CODE>", "message": "<message>"}}

各模块的异常类通过定义 http_status_code 和 error_code 类属性来自定义响应。
"""

from fastapi import Request, status
from fastapi.responses import JSONResponse
from loguru import logger

from src.core.domain.exceptions import DomainException


class BizException(Exception):
    """Business logic exception.

    用于接口层自身的失败（令牌校验、任务队列不可用等），不属于任何领域模块。
    """

    def __init__(
        self,
        message: str = "业务逻辑错误",
        code: int = 400,
        error_code: str = "BIZ_ERROR",
    ):
        self.message = message
        self.code = code
        self.error_code = error_code
        super().__init__(message)


def error_response(status_code: int, error_code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": error_code, "message": message}},
    )


async def biz_exception_handler(request: Request, exc: BizException) -> JSONResponse:
    """Handle business exceptions."""
    if exc.code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.warning(f"{exc.error_code} on {request.url.path}: {exc.message}")
    return error_response(exc.code, exc.error_code, exc.message)


async def domain_exception_handler(
    request: Request, exc: DomainException
) -> JSONResponse:
    """Handle domain exceptions.

    通过读取异常类的 http_status_code 和 error_code 类属性来确定响应。
    这样各模块可以定义自己的异常类而不需要修改 core 层代码。
    """
    status_code = getattr(exc, "http_status_code", status.HTTP_400_BAD_REQUEST)
    error_code = getattr(exc, "error_code", "DOMAIN_ERROR")

    # 上游失败（502）等服务端错误需要留痕；4xx 属于调用方问题
    if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.warning(f"{error_code} on {request.url.path}: {exc.message}")
    else:
        logger.debug(f"{error_code} on {request.url.path}: {exc.message}")

    return error_response(status_code, error_code, exc.message)


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle all unhandled exceptions."""
    logger.exception(f"Unhandled exception on {request.url.path}: {exc}")
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INTERNAL_ERROR",
        "An internal error occurred",
    )
