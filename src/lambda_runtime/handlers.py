# =============================================================================
# Lambda Handlers
# =============================================================================
# A registered lambda is one of four shapes:
#
#   SYNC_JSON    fn(event: dict, context) -> dict
#   SYNC_TYPED   fn(event: InputType, context) -> OutputType
#   ASYNC_JSON   fn(event: dict, context, callback) -> None
#   ASYNC_TYPED  fn(event: InputType, context, callback) -> None
#
# Handler.dispatch() is the single entry point used by the runtime loop. It
# always returns an Outcome and never lets a lambda's Exception escape;
# BaseException (SystemExit, KeyboardInterrupt) still ends the process.
# =============================================================================

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from lambda_runtime.errors import CompletionTimeoutError
from lambda_runtime.serialization import decode_event, decode_typed, encode_result, encode_typed

logger = logging.getLogger(__name__)


class HandlerKind(str, Enum):
    """The four lambda shapes (completion x encoding)."""
    SYNC_JSON = "sync_json"
    SYNC_TYPED = "sync_typed"
    ASYNC_JSON = "async_json"
    ASYNC_TYPED = "async_typed"

    @property
    def is_async(self) -> bool:
        return self in (HandlerKind.ASYNC_JSON, HandlerKind.ASYNC_TYPED)

    @property
    def is_typed(self) -> bool:
        return self in (HandlerKind.SYNC_TYPED, HandlerKind.ASYNC_TYPED)


@dataclass(frozen=True)
class Outcome:
    """Result of one dispatch: exactly one of body / error is set."""
    body: Optional[bytes] = None
    error: Optional[BaseException] = None

    def __post_init__(self):
        if (self.body is None) == (self.error is None):
            raise ValueError("Outcome needs exactly one of body or error")

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, body: bytes) -> "Outcome":
        return cls(body=body)

    @classmethod
    def failure(cls, error: BaseException) -> "Outcome":
        return cls(error=error)


class Completion:
    """
    One-shot gate for async lambdas.

    Starts unsignaled. The first succeed()/fail() sets the outcome and
    releases wait(); later calls are ignored and return False.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._event = threading.Event()
        self._outcome: Optional[Outcome] = None

    @property
    def done(self) -> bool:
        return self._event.is_set()

    def _settle(self, outcome: Outcome) -> bool:
        with self._lock:
            if self._outcome is not None:
                logger.warning("Completion already settled; ignoring repeated completion")
                return False
            self._outcome = outcome
            self._event.set()
            return True

    def succeed(self, body: bytes) -> bool:
        return self._settle(Outcome.success(body))

    def fail(self, error: BaseException) -> bool:
        return self._settle(Outcome.failure(error))

    def wait(self, timeout: Optional[float] = None) -> Outcome:
        """Block until settled. With a timeout, an expired wait settles as a failure."""
        if not self._event.wait(timeout):
            self._settle(Outcome.failure(CompletionTimeoutError(timeout)))
        return self._outcome


class LambdaCallback:
    """
    Callback passed to async lambdas.

        callback(result)   complete successfully with result
        callback.fail(e)   complete with an error
    """

    def __init__(self, completion: Completion, encode: Callable[[Any], bytes]):
        self._completion = completion
        self._encode = encode

    def __call__(self, result: Any) -> bool:
        try:
            body = self._encode(result)
        except Exception as e:
            logger.exception("Could not encode async lambda result")
            return self._completion.fail(e)
        return self._completion.succeed(body)

    def fail(self, error: BaseException) -> bool:
        return self._completion.fail(error)


@dataclass(frozen=True)
class Handler:
    """
    A registered lambda: its shape, the user function, and for typed
    shapes the input and output types.
    """
    kind: HandlerKind
    function: Callable
    input_type: Optional[type] = None
    output_type: Optional[type] = None

    def __post_init__(self):
        if not callable(self.function):
            raise TypeError(f"Lambda function must be callable, got {type(self.function).__name__}")
        if self.kind.is_typed and (self.input_type is None or self.output_type is None):
            raise ValueError(f"{self.kind.value} lambdas need input_type and output_type")

    # =========================================================================
    # CONSTRUCTORS
    # =========================================================================

    @classmethod
    def sync_json(cls, function: Callable) -> "Handler":
        return cls(HandlerKind.SYNC_JSON, function)

    @classmethod
    def async_json(cls, function: Callable) -> "Handler":
        return cls(HandlerKind.ASYNC_JSON, function)

    @classmethod
    def sync_typed(cls, function: Callable, input_type: type, output_type: type) -> "Handler":
        return cls(HandlerKind.SYNC_TYPED, function, input_type, output_type)

    @classmethod
    def async_typed(cls, function: Callable, input_type: type, output_type: type) -> "Handler":
        return cls(HandlerKind.ASYNC_TYPED, function, input_type, output_type)

    @property
    def is_async(self) -> bool:
        return self.kind.is_async

    @property
    def is_typed(self) -> bool:
        return self.kind.is_typed

    @property
    def function_name(self) -> str:
        return getattr(self.function, "__qualname__", repr(self.function))

    # =========================================================================
    # CODEC
    # =========================================================================

    def decode(self, input_data: bytes) -> Any:
        if self.is_typed:
            return decode_typed(input_data, self.input_type)
        return decode_event(input_data)

    def encode(self, result: Any) -> bytes:
        if self.is_typed:
            return encode_typed(result, self.output_type)
        return encode_result(result)

    # =========================================================================
    # APPLY
    # =========================================================================

    def apply(self, input_data: bytes, context: Any) -> bytes:
        """Run a sync lambda. Raises whatever the codec or the lambda raises."""
        if self.is_async:
            raise TypeError(f"{self.kind.value} lambdas complete through apply_async()")
        event = self.decode(input_data)
        return self.encode(self.function(event, context))

    def apply_async(self, input_data: bytes, context: Any, completion: Completion) -> None:
        """Start an async lambda; it settles completion through its callback."""
        if not self.is_async:
            raise TypeError(f"{self.kind.value} lambdas complete through apply()")
        event = self.decode(input_data)
        self.function(event, context, LambdaCallback(completion, self.encode))

    def dispatch(self, input_data: bytes, context: Any, timeout: Optional[float] = None) -> Outcome:
        """
        Run the lambda and return its Outcome.

        Async lambdas are awaited on a one-shot Completion. timeout bounds that
        wait; None waits forever.
        """
        if self.is_async:
            completion = Completion()
            try:
                self.apply_async(input_data, context, completion)
            except Exception as e:
                logger.exception("Lambda '%s' failed", self.function_name)
                completion.fail(e)
            outcome = completion.wait(timeout)
            if isinstance(outcome.error, CompletionTimeoutError):
                logger.error(f"Lambda '{self.function_name}': {outcome.error}")
            return outcome

        try:
            return Outcome.success(self.apply(input_data, context))
        except Exception as e:
            logger.exception("Lambda '%s' failed", self.function_name)
            return Outcome.failure(e)


def make_handler(function: Callable, asynchronous: bool = False,
                 input_type: type = None, output_type: type = None) -> Handler:
    """Pick the Handler shape from the decorator arguments."""
    if input_type is not None or output_type is not None:
        if asynchronous:
            return Handler.async_typed(function, input_type, output_type)
        return Handler.sync_typed(function, input_type, output_type)
    if asynchronous:
        return Handler.async_json(function)
    return Handler.sync_json(function)
