# =============================================================================
# Invocation Context
# =============================================================================
# Per-invocation metadata handed to every lambda. Function-level fields come
# from the process environment, request-level fields from the headers of the
# next-invocation response.
# =============================================================================

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Mapping, MutableMapping, Optional

from lambda_runtime.client import Invocation, parse_json_header
from lambda_runtime.errors import InvalidInvocationError

logger = logging.getLogger(__name__)

TRACE_ID_ENV = "_X_AMZN_TRACE_ID"

FUNCTION_NAME_ENV = "AWS_LAMBDA_FUNCTION_NAME"
FUNCTION_VERSION_ENV = "AWS_LAMBDA_FUNCTION_VERSION"
MEMORY_SIZE_ENV = "AWS_LAMBDA_FUNCTION_MEMORY_SIZE"
LOG_GROUP_ENV = "AWS_LAMBDA_LOG_GROUP_NAME"
LOG_STREAM_ENV = "AWS_LAMBDA_LOG_STREAM_NAME"


@dataclass(frozen=True)
class Context:
    """
    Read-only metadata for one invocation.

    Attributes:
        function_name: AWS_LAMBDA_FUNCTION_NAME
        function_version: AWS_LAMBDA_FUNCTION_VERSION
        memory_limit_in_mb: AWS_LAMBDA_FUNCTION_MEMORY_SIZE
        log_group_name: AWS_LAMBDA_LOG_GROUP_NAME
        log_stream_name: AWS_LAMBDA_LOG_STREAM_NAME
        aws_request_id: Lambda-Runtime-Aws-Request-Id
        invoked_function_arn: Lambda-Runtime-Invoked-Function-Arn
        deadline_ms: Lambda-Runtime-Deadline-Ms (epoch milliseconds)
        trace_id: Lambda-Runtime-Trace-Id
        client_context: decoded Lambda-Runtime-Client-Context
        identity: decoded Lambda-Runtime-Cognito-Identity
    """
    function_name: str
    function_version: str
    memory_limit_in_mb: str
    log_group_name: str
    log_stream_name: str
    aws_request_id: str
    invoked_function_arn: str
    deadline_ms: Optional[int] = None
    trace_id: Optional[str] = None
    client_context: Optional[Dict[str, Any]] = None
    identity: Optional[Dict[str, Any]] = None

    def get_remaining_time_in_millis(self) -> int:
        """Milliseconds left before the platform deadline (0 if unknown or past)."""
        if self.deadline_ms is None:
            return 0
        return max(self.deadline_ms - int(time.time() * 1000), 0)


def propagate_trace_id(environ: MutableMapping[str, str], trace_id: Optional[str]) -> None:
    """Expose the current invocation's trace header to handler code."""
    if trace_id:
        environ[TRACE_ID_ENV] = trace_id
    else:
        environ.pop(TRACE_ID_ENV, None)


def build_context(environ: MutableMapping[str, str], headers: Mapping[str, str]) -> Context:
    """
    Build the Context for one invocation.

    Side effect: the trace header, when present, is written to
    environ["_X_AMZN_TRACE_ID"]; when absent, any stale value is removed.

    Raises:
        InvalidInvocationError: request id or function ARN header missing
    """
    invocation = headers if isinstance(headers, Invocation) else Invocation(b"", headers)

    request_id = invocation.request_id
    if not request_id:
        raise InvalidInvocationError("Invocation is missing the Lambda-Runtime-Aws-Request-Id header")

    invoked_function_arn = invocation.invoked_function_arn
    if not invoked_function_arn:
        raise InvalidInvocationError(
            "Invocation is missing the Lambda-Runtime-Invoked-Function-Arn header",
            request_id=request_id,
        )

    propagate_trace_id(environ, invocation.trace_id)

    return Context(
        function_name=environ.get(FUNCTION_NAME_ENV, ""),
        function_version=environ.get(FUNCTION_VERSION_ENV, ""),
        memory_limit_in_mb=environ.get(MEMORY_SIZE_ENV, ""),
        log_group_name=environ.get(LOG_GROUP_ENV, ""),
        log_stream_name=environ.get(LOG_STREAM_ENV, ""),
        aws_request_id=request_id,
        invoked_function_arn=invoked_function_arn,
        deadline_ms=invocation.deadline_ms,
        trace_id=invocation.trace_id,
        client_context=parse_json_header(invocation.client_context),
        identity=parse_json_header(invocation.cognito_identity),
    )
