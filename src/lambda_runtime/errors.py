# =============================================================================
# Runtime Errors
# =============================================================================
# Fatal errors (configuration, Runtime API transport) propagate out of the
# loop and end the process. Invocation errors are caught at the dispatch
# boundary and reported to the Runtime API for that one request.
# =============================================================================


class LambdaRuntimeError(Exception):
    """Base class for every error raised by the runtime itself."""


# =============================================================================
# FATAL
# =============================================================================

class ConfigurationError(LambdaRuntimeError):
    """The process is misconfigured; the loop cannot run."""


class MissingEnvironmentVariablesError(ConfigurationError):
    def __init__(self, names):
        self.names = list(names)
        super().__init__(f"Missing required environment variables: {', '.join(self.names)}")


class InvalidHandlerNameError(ConfigurationError):
    def __init__(self, handler: str):
        self.handler = handler
        super().__init__(
            f"Invalid handler name '{handler}': expected '<module>.<entrypoint>'"
        )


class UnknownHandlerError(ConfigurationError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"No lambda registered under '{name}'")


class RuntimeAPIError(LambdaRuntimeError):
    """The Runtime API could not be reached or answered with a bad status."""


# =============================================================================
# PER-INVOCATION
# =============================================================================

class InvocationError(LambdaRuntimeError):
    """Failure scoped to a single invocation."""


class DecodeError(InvocationError):
    """Event payload could not be decoded into the handler's input."""


class EncodeError(InvocationError):
    """Handler result could not be encoded into a response body."""


class InvalidInvocationError(InvocationError):
    """The Runtime API omitted a header every invocation must carry."""

    def __init__(self, message: str, request_id: str = None):
        self.request_id = request_id
        super().__init__(message)


class CompletionTimeoutError(InvocationError):
    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"Handler did not complete within {timeout:g} seconds")
