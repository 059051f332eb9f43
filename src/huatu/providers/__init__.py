"""Network-facing pieces: abort primitive, retrying client and backend driver."""

from .abort import AbortSignal, run_with_timeout
from .http_client import RequestRegistry, RetryingRequestClient
from .huatu_api import HuatuApi, build_generate_payload
from .status import decode_status, parse_job_result

__all__ = [
    "AbortSignal",
    "HuatuApi",
    "RequestRegistry",
    "RetryingRequestClient",
    "build_generate_payload",
    "decode_status",
    "parse_job_result",
    "run_with_timeout",
]
