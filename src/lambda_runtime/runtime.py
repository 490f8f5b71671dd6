# =============================================================================
# Runtime Loop
# =============================================================================
# Fetch -> resolve -> build context -> dispatch -> report, forever.
#
# Usage:
#   runtime = Runtime()
#   runtime.register_lambda("process", lambda event, context: {"ok": True})
#   runtime.start()
# =============================================================================

import logging
import os
from typing import Callable, MutableMapping, Optional

from lambda_runtime.client import RuntimeClient
from lambda_runtime.config import RuntimeConfig
from lambda_runtime.context import build_context
from lambda_runtime.errors import InvalidInvocationError, UnknownHandlerError
from lambda_runtime.handlers import Handler, Outcome, make_handler
from lambda_runtime.registry import HandlerRegistry

logger = logging.getLogger(__name__)


class Runtime:
    """
    Custom runtime bridging the Lambda Runtime API to registered lambdas.

    Only one invocation is ever in flight. Fatal errors (Runtime API fetch
    failures, an unregistered entrypoint) propagate out of start(); lambda
    failures are reported for their invocation and the loop continues.
    """

    def __init__(
        self,
        config: RuntimeConfig = None,
        client: RuntimeClient = None,
        registry: HandlerRegistry = None,
        environ: MutableMapping[str, str] = None,
    ):
        """
        Args:
            config: runtime configuration (read from environ if not provided)
            client: Runtime API client (built from config if not provided)
            registry: lambda registry (a fresh one if not provided)
            environ: process environment; receives the trace id side effect
        """
        self.environ = os.environ if environ is None else environ
        self.config = config or RuntimeConfig.from_environ(self.environ)
        self.client = client or RuntimeClient(self.config.runtime_api)
        self.registry = registry if registry is not None else HandlerRegistry()
        self.invocation_count = 0

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def register(self, name: str, handler: Handler) -> None:
        self.registry.register(name, handler)

    def register_lambda(self, name: str, function: Callable) -> None:
        """Register fn(event: dict, context) -> dict."""
        self.register(name, Handler.sync_json(function))

    def register_async_lambda(self, name: str, function: Callable) -> None:
        """Register fn(event: dict, context, callback) -> None."""
        self.register(name, Handler.async_json(function))

    def register_typed_lambda(self, name: str, function: Callable, input_type: type, output_type: type) -> None:
        """Register fn(event: input_type, context) -> output_type."""
        self.register(name, Handler.sync_typed(function, input_type, output_type))

    def register_typed_async_lambda(self, name: str, function: Callable, input_type: type, output_type: type) -> None:
        """Register fn(event: input_type, context, callback) -> None."""
        self.register(name, Handler.async_typed(function, input_type, output_type))

    def lambda_handler(self, name: str = None, asynchronous: bool = False,
                       input_type: type = None, output_type: type = None):
        """
        Decorator form of the register_* methods.

        Usage:
            @runtime.lambda_handler("process")
            def process(event, context):
                return {"ok": True}
        """
        def decorator(func: Callable) -> Callable:
            self.register(name or func.__name__, make_handler(func, asynchronous, input_type, output_type))
            return func
        return decorator

    # =========================================================================
    # LOOP
    # =========================================================================

    def _report(self, request_id: str, outcome: Outcome) -> None:
        try:
            if outcome.succeeded:
                self.client.post_invocation_response(request_id, outcome.body)
            else:
                self.client.post_invocation_error(request_id, outcome.error)
        except Exception:
            logger.exception("Failed to report outcome for %s", request_id)

    def run_once(self) -> Outcome:
        """
        Process exactly one invocation.

        Raises:
            RuntimeAPIError: the next invocation could not be fetched
            UnknownHandlerError: nothing is registered under the entrypoint
        """
        invocation = self.client.get_next_invocation()
        self.invocation_count += 1
        logger.info(f"Invocation-Counter: {self.invocation_count}")

        handler_name = self.config.handler_name
        handler = self.registry.resolve(handler_name)
        if handler is None:
            raise UnknownHandlerError(handler_name)

        try:
            context = build_context(self.environ, invocation)
        except InvalidInvocationError as e:
            logger.error(f"Rejecting invocation: {e}")
            if e.request_id:
                self._report(e.request_id, Outcome.failure(e))
            return Outcome.failure(e)

        request_id = context.aws_request_id
        logger.info(f"Dispatching {request_id} to '{handler_name}' ({handler.kind.value})")

        outcome = handler.dispatch(
            invocation.event_data, context, timeout=self.config.completion_timeout
        )
        self._report(request_id, outcome)
        return outcome

    def start(self) -> None:
        """Serve invocations until a fatal error. Never returns normally."""
        logger.info(
            f"Runtime started: api={self.config.runtime_api} handler={self.config.handler} "
            f"registered={self.registry.names()}"
        )
        while True:
            self.run_once()


# =============================================================================
# DEFAULT REGISTRY
# =============================================================================
# Modules loaded by the bootstrap register into this registry at import time.

_default_registry: Optional[HandlerRegistry] = None


def get_registry() -> HandlerRegistry:
    """Get or create the process-wide default registry."""
    global _default_registry
    if _default_registry is None:
        _default_registry = HandlerRegistry()
    return _default_registry


def lambda_handler(name: str = None, asynchronous: bool = False,
                   input_type: type = None, output_type: type = None):
    """
    Register a lambda into the default registry.

    Usage:
        @lambda_handler("process", input_type=Order, output_type=Receipt)
        def process(order, context):
            return Receipt(order_id=order.id)
    """
    def decorator(func: Callable) -> Callable:
        get_registry().register(name or func.__name__, make_handler(func, asynchronous, input_type, output_type))
        return func
    return decorator
