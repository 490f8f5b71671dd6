"""
Shared fixtures for the runtime test suite.

Run with: pytest tests -v
"""
import json
import os
import sys

import pytest

# Allow running the suite from a plain checkout
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "src"))

from lambda_runtime.client import Invocation
from lambda_runtime.config import RuntimeConfig
from lambda_runtime.errors import RuntimeAPIError
from lambda_runtime.serialization import encode_error


class FakeRuntimeClient:
    """In-memory stand-in for RuntimeClient that records every report."""

    def __init__(self, invocations=None):
        self.invocations = list(invocations or [])
        self.fetches = 0
        self.responses = []
        self.errors = []

    def queue(self, body, request_id="req-1", arn="arn:aws:lambda:us-east-1:123456789012:function:test", **headers):
        all_headers = {
            "Lambda-Runtime-Aws-Request-Id": request_id,
            "Lambda-Runtime-Invoked-Function-Arn": arn,
        }
        all_headers.update(headers)
        if isinstance(body, (dict, list)):
            body = json.dumps(body)
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.invocations.append(Invocation(event_data=body, headers=all_headers))

    def get_next_invocation(self):
        self.fetches += 1
        if not self.invocations:
            raise RuntimeAPIError("Failed to get next invocation: connection refused")
        return self.invocations.pop(0)

    def post_invocation_response(self, request_id, body):
        self.responses.append((request_id, json.loads(body)))
        return True

    def post_invocation_error(self, request_id, error):
        self.errors.append((request_id, json.loads(encode_error(error))))
        return True

    @property
    def reports(self):
        return len(self.responses) + len(self.errors)


@pytest.fixture
def fake_client():
    return FakeRuntimeClient()


@pytest.fixture
def environ():
    return {
        "AWS_LAMBDA_RUNTIME_API": "127.0.0.1:9001",
        "_HANDLER": "index.process",
        "AWS_LAMBDA_FUNCTION_NAME": "test-function",
        "AWS_LAMBDA_FUNCTION_VERSION": "$LATEST",
        "AWS_LAMBDA_FUNCTION_MEMORY_SIZE": "128",
        "AWS_LAMBDA_LOG_GROUP_NAME": "/aws/lambda/test-function",
        "AWS_LAMBDA_LOG_STREAM_NAME": "2026/10/19/[$LATEST]abcdef",
    }


@pytest.fixture
def config(environ):
    return RuntimeConfig.from_environ(environ)


@pytest.fixture
def runtime(config, fake_client, environ):
    from lambda_runtime.runtime import Runtime
    return Runtime(config=config, client=fake_client, environ=environ)
