# =============================================================================
# Lambda Runtime Package
# =============================================================================
# Custom AWS Lambda runtime: polls the Runtime API, dispatches each event to a
# registered lambda and reports the result or error back.
# =============================================================================

from lambda_runtime.client import Invocation, RuntimeClient
from lambda_runtime.config import RuntimeConfig
from lambda_runtime.context import Context, build_context
from lambda_runtime.errors import (
    ConfigurationError,
    DecodeError,
    EncodeError,
    InvocationError,
    LambdaRuntimeError,
    RuntimeAPIError,
    UnknownHandlerError,
)
from lambda_runtime.handlers import Handler, HandlerKind, Outcome
from lambda_runtime.registry import HandlerRegistry
from lambda_runtime.runtime import Runtime, get_registry, lambda_handler

__version__ = "0.1.0"

__all__ = [
    "Runtime",
    "RuntimeConfig",
    "RuntimeClient",
    "Invocation",
    "Context",
    "build_context",
    "Handler",
    "HandlerKind",
    "Outcome",
    "HandlerRegistry",
    "get_registry",
    "lambda_handler",
    "LambdaRuntimeError",
    "ConfigurationError",
    "UnknownHandlerError",
    "RuntimeAPIError",
    "InvocationError",
    "DecodeError",
    "EncodeError",
]
