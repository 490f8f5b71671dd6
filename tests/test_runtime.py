"""
Test suite for the runtime loop.

Tests:
- Registration surface (four shapes, decorator, default registry)
- One iteration: fetch -> resolve -> context -> dispatch -> report
- Fatal errors (fetch failure, unknown entrypoint)
- Per-invocation errors and best-effort reporting

Run with: pytest tests/test_runtime.py -v
"""
import threading
from dataclasses import dataclass
from unittest.mock import MagicMock

import pytest

from lambda_runtime.context import TRACE_ID_ENV
from lambda_runtime.errors import RuntimeAPIError, UnknownHandlerError
from lambda_runtime.handlers import HandlerKind
from lambda_runtime.runtime import Runtime


@dataclass
class Order:
    order_id: str
    quantity: int


@dataclass
class Receipt:
    order_id: str
    accepted: bool


# =============================================================================
# TEST: Registration
# =============================================================================

class TestRegistration:
    """Tests for the registration surface."""

    def test_four_shapes(self, runtime):
        """Each register_* method stores the matching handler kind."""
        runtime.register_lambda("sync_json", lambda e, c: {})
        runtime.register_async_lambda("async_json", lambda e, c, cb: cb({}))
        runtime.register_typed_lambda("sync_typed", lambda e, c: None, Order, Receipt)
        runtime.register_typed_async_lambda("async_typed", lambda e, c, cb: None, Order, Receipt)

        assert runtime.registry.resolve("sync_json").kind is HandlerKind.SYNC_JSON
        assert runtime.registry.resolve("async_json").kind is HandlerKind.ASYNC_JSON
        assert runtime.registry.resolve("sync_typed").kind is HandlerKind.SYNC_TYPED
        assert runtime.registry.resolve("async_typed").kind is HandlerKind.ASYNC_TYPED
        assert runtime.registry.resolve("missing") is None

    def test_last_registration_wins(self, runtime, fake_client):
        runtime.register_lambda("process", lambda e, c: {"version": 1})
        runtime.register_lambda("process", lambda e, c: {"version": 2})
        fake_client.queue({})

        runtime.run_once()

        assert fake_client.responses == [("req-1", {"version": 2})]
        assert len(runtime.registry) == 1

    def test_decorator(self, runtime):
        @runtime.lambda_handler()
        def process(event, context):
            return {"ok": True}

        @runtime.lambda_handler("typed", input_type=Order, output_type=Receipt)
        def typed(order, context):
            return Receipt(order.order_id, True)

        assert "process" in runtime.registry
        assert runtime.registry.resolve("typed").kind is HandlerKind.SYNC_TYPED
        assert process({}, None) == {"ok": True}

    def test_module_level_decorator_uses_default_registry(self, monkeypatch):
        from lambda_runtime import runtime as runtime_module

        monkeypatch.setattr(runtime_module, "_default_registry", None)

        @runtime_module.lambda_handler("process", asynchronous=True)
        def process(event, context, callback):
            callback({})

        assert runtime_module.get_registry().resolve("process").kind is HandlerKind.ASYNC_JSON

    def test_config_read_from_environ(self, environ, fake_client):
        runtime = Runtime(client=fake_client, environ=environ)

        assert runtime.config.handler_name == "process"


# =============================================================================
# TEST: Loop iteration
# =============================================================================

class TestRunOnce:
    """Tests for a single loop iteration."""

    def test_sync_json_success_scenario(self, runtime, fake_client):
        """HANDLER=index.process, handler returns {"ok": true}."""
        runtime.register_lambda("process", lambda event, context: {"ok": True})
        fake_client.queue({"anything": 1})

        outcome = runtime.run_once()

        assert outcome.succeeded
        assert fake_client.responses == [("req-1", {"ok": True})]
        assert fake_client.errors == []
        assert runtime.invocation_count == 1

    def test_handler_error_scenario(self, runtime, fake_client):
        """A handler raising "boom" reports {"errorMessage": "boom"}."""
        def process(event, context):
            raise ValueError("boom")

        runtime.register_lambda("process", process)
        fake_client.queue({})

        outcome = runtime.run_once()

        assert not outcome.succeeded
        assert fake_client.errors == [("req-1", {"errorMessage": "boom"})]
        assert fake_client.responses == []

    def test_trace_id_scenario(self, runtime, fake_client, environ):
        """The trace header is visible in the environment during the invocation."""
        seen = {}

        def process(event, context):
            seen["trace"] = environ.get(TRACE_ID_ENV)
            return {}

        runtime.register_lambda("process", process)
        fake_client.queue({}, **{"Lambda-Runtime-Trace-Id": "Root=1-abc"})

        runtime.run_once()

        assert seen["trace"] == "Root=1-abc"
        assert environ[TRACE_ID_ENV] == "Root=1-abc"

    def test_typed_decode_failure_is_reported(self, runtime, fake_client):
        runtime.register_typed_lambda("process", lambda o, c: Receipt(o.order_id, True), Order, Receipt)
        fake_client.queue({"order_id": "o-1"})

        runtime.run_once()

        assert len(fake_client.errors) == 1
        assert fake_client.errors[0][1]["errorMessage"]
        assert fake_client.responses == []

    def test_typed_success(self, runtime, fake_client):
        runtime.register_typed_lambda(
            "process", lambda o, c: Receipt(o.order_id, o.quantity > 0), Order, Receipt
        )
        fake_client.queue({"order_id": "o-1", "quantity": 2})

        runtime.run_once()

        assert fake_client.responses == [("req-1", {"order_id": "o-1", "accepted": True})]

    def test_async_double_completion_reports_once(self, runtime, fake_client):
        def process(event, context, callback):
            callback({"n": 1})
            callback({"n": 2})

        runtime.register_async_lambda("process", process)
        fake_client.queue({})

        runtime.run_once()

        assert fake_client.reports == 1
        assert fake_client.responses == [("req-1", {"n": 1})]

    def test_async_completion_from_worker_thread(self, runtime, fake_client):
        def process(event, context, callback):
            threading.Thread(target=callback, args=({"worker": True},)).start()

        runtime.register_async_lambda("process", process)
        fake_client.queue({})

        runtime.run_once()

        assert fake_client.responses == [("req-1", {"worker": True})]

    def test_async_typed(self, runtime, fake_client):
        runtime.register_typed_async_lambda(
            "process", lambda o, c, cb: cb(Receipt(o.order_id, False)), Order, Receipt
        )
        fake_client.queue({"order_id": "o-9", "quantity": 0})

        runtime.run_once()

        assert fake_client.responses == [("req-1", {"order_id": "o-9", "accepted": False})]

    def test_context_passed_to_handler(self, runtime, fake_client):
        runtime.register_lambda("process", lambda e, c: {
            "requestId": c.aws_request_id,
            "functionName": c.function_name,
        })
        fake_client.queue({}, request_id="req-42")

        runtime.run_once()

        assert fake_client.responses == [("req-42", {"requestId": "req-42", "functionName": "test-function"})]

    def test_missing_function_arn_reports_error_and_continues(self, runtime, fake_client):
        runtime.register_lambda("process", lambda e, c: {"ok": True})
        fake_client.queue({}, request_id="req-1", arn="")
        fake_client.queue({}, request_id="req-2")

        runtime.run_once()
        runtime.run_once()

        assert fake_client.errors[0][0] == "req-1"
        assert "Invoked-Function-Arn" in fake_client.errors[0][1]["errorMessage"]
        assert fake_client.responses == [("req-2", {"ok": True})]

    def test_missing_request_id_is_not_reported(self, runtime, fake_client):
        runtime.register_lambda("process", lambda e, c: {"ok": True})
        fake_client.queue({}, request_id="")

        outcome = runtime.run_once()

        assert not outcome.succeeded
        assert fake_client.reports == 0

    def test_completion_timeout(self, environ, fake_client):
        environ["LAMBDA_RUNTIME_COMPLETION_TIMEOUT"] = "0.01"
        runtime = Runtime(client=fake_client, environ=environ)
        runtime.register_async_lambda("process", lambda e, c, cb: None)
        fake_client.queue({})

        runtime.run_once()

        assert "did not complete" in fake_client.errors[0][1]["errorMessage"]


# =============================================================================
# TEST: Fatal errors and the loop
# =============================================================================

class TestStart:
    """Tests for start() and fatal error handling."""

    def test_unknown_handler_is_fatal_before_any_report(self, runtime, fake_client):
        runtime.register_lambda("other", lambda e, c: {})
        fake_client.queue({})

        with pytest.raises(UnknownHandlerError):
            runtime.start()

        assert fake_client.reports == 0

    def test_fetch_failure_ends_loop(self, runtime, fake_client):
        runtime.register_lambda("process", lambda e, c: {})

        with pytest.raises(RuntimeAPIError):
            runtime.start()

        assert fake_client.fetches == 1

    def test_loop_survives_handler_failures(self, runtime, fake_client):
        calls = []

        def process(event, context):
            calls.append(event["n"])
            if event["n"] % 2:
                raise RuntimeError(f"odd {event['n']}")
            return {"n": event["n"]}

        runtime.register_lambda("process", process)
        for n in range(4):
            fake_client.queue({"n": n}, request_id=f"req-{n}")

        with pytest.raises(RuntimeAPIError):
            runtime.start()

        assert calls == [0, 1, 2, 3]
        assert runtime.invocation_count == 4
        assert fake_client.responses == [("req-0", {"n": 0}), ("req-2", {"n": 2})]
        assert fake_client.errors == [("req-1", {"errorMessage": "odd 1"}), ("req-3", {"errorMessage": "odd 3"})]

    def test_report_failure_does_not_stop_loop(self, runtime, fake_client):
        runtime.register_lambda("process", lambda e, c: {"ok": True})
        fake_client.queue({}, request_id="req-1")
        fake_client.queue({}, request_id="req-2")
        fake_client.post_invocation_response = MagicMock(side_effect=[OSError("reset"), True])

        with pytest.raises(RuntimeAPIError):
            runtime.start()

        assert fake_client.post_invocation_response.call_count == 2
        assert runtime.invocation_count == 2

    def test_unprintable_exception_is_reported_and_loop_continues(self, runtime, fake_client):
        class Weird(Exception):
            def __str__(self):
                raise RuntimeError("bad str")

        def process(event, context):
            if event["n"] == 0:
                raise Weird("x")
            return {"n": event["n"]}

        runtime.register_lambda("process", process)
        fake_client.queue({"n": 0}, request_id="req-0")
        fake_client.queue({"n": 1}, request_id="req-1")

        with pytest.raises(RuntimeAPIError):
            runtime.start()

        assert fake_client.errors == [("req-0", {"errorMessage": "Weird('x')"})]
        assert fake_client.responses == [("req-1", {"n": 1})]

    def test_system_exit_from_lambda_ends_loop(self, runtime, fake_client):
        def process(event, context):
            raise SystemExit(2)

        runtime.register_lambda("process", process)
        fake_client.queue({})

        with pytest.raises(SystemExit):
            runtime.start()

        assert fake_client.reports == 0
