"""
Response Helper Utilities
Centralized error response formatting and exception-to-status mapping
"""

import logging

from fastapi.responses import JSONResponse

from clipforge.config.constants import (
    HTTP_STATUS_BAD_GATEWAY,
    HTTP_STATUS_BAD_REQUEST,
    HTTP_STATUS_CONFLICT,
    HTTP_STATUS_GATEWAY_TIMEOUT,
    HTTP_STATUS_INTERNAL_ERROR,
    HTTP_STATUS_NOT_FOUND,
)
from clipforge.utils.exceptions import (
    ConfigError,
    InvalidUrlError,
    MissingAssetError,
    ParseError,
    PipelineBusyError,
    ProcessTimeoutError,
    UpstreamError,
)

logger = logging.getLogger(__name__)


def error_response(message: str, status_code: int = HTTP_STATUS_INTERNAL_ERROR) -> JSONResponse:
    """Create standardized error response"""
    return JSONResponse(status_code=status_code, content={"error": message})


def status_for_exception(error: Exception) -> int:
    if isinstance(error, (InvalidUrlError, ParseError)):
        return HTTP_STATUS_BAD_REQUEST
    if isinstance(error, LookupError):
        return HTTP_STATUS_NOT_FOUND
    if isinstance(error, (MissingAssetError, PipelineBusyError)):
        return HTTP_STATUS_CONFLICT
    if isinstance(error, UpstreamError):
        return HTTP_STATUS_BAD_GATEWAY
    if isinstance(error, ProcessTimeoutError):
        return HTTP_STATUS_GATEWAY_TIMEOUT
    if isinstance(error, ValueError):
        return HTTP_STATUS_BAD_REQUEST
    if isinstance(error, ConfigError):
        return HTTP_STATUS_INTERNAL_ERROR
    return HTTP_STATUS_INTERNAL_ERROR


def handle_service_error(error: Exception, operation: str) -> JSONResponse:
    """Log a failed operation and convert it into an {error} response"""
    status_code = status_for_exception(error)
    if status_code >= HTTP_STATUS_INTERNAL_ERROR:
        logger.error(f"❌ {operation} failed: {error}", exc_info=not isinstance(error, (ConfigError, UpstreamError)))
    else:
        logger.warning(f"{operation} rejected: {error}")
    return error_response(str(error) or f"{operation} failed", status_code)
