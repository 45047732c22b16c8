"""REST API access and error classification."""

from .client import ApiClient, ApiError, extract_error_message, safe_read_json
from .errors import ErrorKind, HandledApiError, handle_api_error

__all__ = [
    "ApiClient",
    "ApiError",
    "ErrorKind",
    "HandledApiError",
    "extract_error_message",
    "handle_api_error",
    "safe_read_json",
]
