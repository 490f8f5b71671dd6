# =============================================================================
# Runtime Configuration
# =============================================================================
# Read once at startup from the process environment.
# =============================================================================

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from lambda_runtime.errors import (
    ConfigurationError,
    InvalidHandlerNameError,
    MissingEnvironmentVariablesError,
)

logger = logging.getLogger(__name__)

RUNTIME_API_ENV = "AWS_LAMBDA_RUNTIME_API"
HANDLER_ENV = "_HANDLER"
COMPLETION_TIMEOUT_ENV = "LAMBDA_RUNTIME_COMPLETION_TIMEOUT"


def split_handler(handler: str):
    """
    Split a '<module>.<entrypoint>' identifier at its first period.

    Returns:
        (module_name, entrypoint) tuple
    """
    module_name, sep, entrypoint = handler.partition(".")
    if not sep:
        raise InvalidHandlerNameError(handler)
    return module_name, entrypoint


def _parse_timeout(raw: Optional[str]) -> Optional[float]:
    if raw is None or not raw.strip():
        return None
    try:
        timeout = float(raw)
    except ValueError:
        raise ConfigurationError(f"{COMPLETION_TIMEOUT_ENV} must be a number, got '{raw}'")
    if timeout <= 0:
        raise ConfigurationError(f"{COMPLETION_TIMEOUT_ENV} must be positive, got '{raw}'")
    return timeout


@dataclass(frozen=True)
class RuntimeConfig:
    """
    Immutable runtime configuration.

    Attributes:
        runtime_api: host:port of the Lambda Runtime API
        handler: full handler identifier, e.g. "index.process"
        module_name: part of the identifier before the first period
        handler_name: entrypoint used to look up the registered lambda
        completion_timeout: optional bound (seconds) on async completion waits
    """
    runtime_api: str
    handler: str
    module_name: str
    handler_name: str
    completion_timeout: Optional[float] = None

    @property
    def base_url(self) -> str:
        return f"http://{self.runtime_api}/2018-06-01/runtime"

    @classmethod
    def from_environ(cls, environ: Mapping[str, str] = None) -> "RuntimeConfig":
        """Build configuration from the environment (defaults to os.environ)."""
        if environ is None:
            environ = os.environ

        runtime_api = environ.get(RUNTIME_API_ENV)
        handler = environ.get(HANDLER_ENV)
        missing = [
            name for name, value in ((RUNTIME_API_ENV, runtime_api), (HANDLER_ENV, handler))
            if not value
        ]
        if missing:
            raise MissingEnvironmentVariablesError(missing)

        module_name, handler_name = split_handler(handler)
        config = cls(
            runtime_api=runtime_api,
            handler=handler,
            module_name=module_name,
            handler_name=handler_name,
            completion_timeout=_parse_timeout(environ.get(COMPLETION_TIMEOUT_ENV)),
        )
        logger.debug(f"Loaded runtime config: api={runtime_api} handler={handler}")
        return config
