# =============================================================================
# Runtime API Client
# =============================================================================
# Blocking HTTP client for the Lambda Runtime API (2018-06-01).
#
# Usage:
#   client = RuntimeClient("127.0.0.1:9001")
#   invocation = client.get_next_invocation()
#   client.post_invocation_response(invocation.request_id, b'{"ok": true}')
# =============================================================================

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

import requests
from requests.structures import CaseInsensitiveDict

from lambda_runtime.errors import RuntimeAPIError
from lambda_runtime.serialization import encode_error

logger = logging.getLogger(__name__)

API_VERSION = "2018-06-01"

# Invocation response headers
REQUEST_ID_HEADER = "Lambda-Runtime-Aws-Request-Id"
FUNCTION_ARN_HEADER = "Lambda-Runtime-Invoked-Function-Arn"
DEADLINE_HEADER = "Lambda-Runtime-Deadline-Ms"
TRACE_ID_HEADER = "Lambda-Runtime-Trace-Id"
CLIENT_CONTEXT_HEADER = "Lambda-Runtime-Client-Context"
COGNITO_IDENTITY_HEADER = "Lambda-Runtime-Cognito-Identity"

ERROR_TYPE_HEADER = "Lambda-Runtime-Function-Error-Type"


@dataclass
class Invocation:
    """
    One event handed out by the Runtime API.

    Attributes:
        event_data: raw request body
        headers: response headers of the next-invocation call
    """
    event_data: bytes
    headers: Mapping[str, str] = field(default_factory=CaseInsensitiveDict)

    def __post_init__(self):
        if not isinstance(self.headers, CaseInsensitiveDict):
            self.headers = CaseInsensitiveDict(self.headers)

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name)

    @property
    def request_id(self) -> Optional[str]:
        return self.header(REQUEST_ID_HEADER)

    @property
    def invoked_function_arn(self) -> Optional[str]:
        return self.header(FUNCTION_ARN_HEADER)

    @property
    def deadline_ms(self) -> Optional[int]:
        raw = self.header(DEADLINE_HEADER)
        if not raw:
            return None
        try:
            return int(raw)
        except ValueError:
            logger.warning(f"Ignoring malformed {DEADLINE_HEADER} header: {raw}")
            return None

    @property
    def trace_id(self) -> Optional[str]:
        return self.header(TRACE_ID_HEADER)

    @property
    def client_context(self) -> Optional[str]:
        return self.header(CLIENT_CONTEXT_HEADER)

    @property
    def cognito_identity(self) -> Optional[str]:
        return self.header(COGNITO_IDENTITY_HEADER)


class RuntimeClient:
    """
    Client for the Lambda Runtime API.

    Fetching the next invocation raises RuntimeAPIError on any failure: the
    caller treats that as fatal. Report calls are best-effort and never raise
    for transport problems; they return whether the API accepted the report.
    """

    def __init__(self, runtime_api: str, session: requests.Session = None, report_timeout: float = 30):
        """
        Args:
            runtime_api: host:port of the Runtime API (AWS_LAMBDA_RUNTIME_API)
            session: optional requests.Session to reuse
            report_timeout: timeout in seconds for response/error POSTs
        """
        self.runtime_api = runtime_api
        self.base_url = f"http://{runtime_api}/{API_VERSION}/runtime"
        self.session = session or requests.Session()
        self.report_timeout = report_timeout

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    # =========================================================================
    # NEXT INVOCATION
    # =========================================================================

    def get_next_invocation(self) -> Invocation:
        """Block until the platform hands out the next event."""
        url = self._url("/invocation/next")
        try:
            # No read timeout: the call is held open until there is work.
            response = self.session.get(url, timeout=None)
        except requests.exceptions.RequestException as e:
            raise RuntimeAPIError(f"Failed to get next invocation: {e}") from e

        if not response.ok:
            raise RuntimeAPIError(
                f"Failed to get next invocation: HTTP {response.status_code} {response.text}"
            )

        # An empty body is passed through; decoding rejects it per invocation.
        return Invocation(event_data=response.content, headers=response.headers)

    # =========================================================================
    # REPORTS
    # =========================================================================

    def _post(self, path: str, body: bytes, headers: dict = None) -> bool:
        url = self._url(path)
        try:
            response = self.session.post(url, data=body, headers=headers, timeout=self.report_timeout)
        except requests.exceptions.RequestException as e:
            logger.error(f"POST {path} failed: {e}")
            return False

        if not response.ok:
            logger.warning(f"POST {path} returned HTTP {response.status_code}: {response.text}")
            return False
        return True

    def post_invocation_response(self, request_id: str, body: bytes) -> bool:
        """Submit a success payload for request_id."""
        return self._post(f"/invocation/{request_id}/response", body)

    def post_invocation_error(self, request_id: str, error: BaseException) -> bool:
        """Submit {"errorMessage": str(error)} for request_id."""
        return self._post(
            f"/invocation/{request_id}/error",
            encode_error(error),
            headers={
                "Content-Type": "application/json",
                ERROR_TYPE_HEADER: "Unhandled",
            },
        )


def parse_json_header(raw: Optional[str]) -> Optional[Any]:
    """Parse a JSON-valued header (client context, cognito identity)."""
    if not raw:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        logger.warning(f"Ignoring non-JSON header value: {raw[:100]}")
        return None
