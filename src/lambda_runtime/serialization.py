# =============================================================================
# Payload Serialization
# =============================================================================
# Untyped lambdas exchange JSON objects (Dict[str, Any]).
# Typed lambdas exchange any type pydantic can validate (dataclasses,
# BaseModel subclasses, enums, unions, containers).
# =============================================================================

import json
import logging
from functools import lru_cache
from typing import Any, Dict

from pydantic import TypeAdapter, ValidationError

from lambda_runtime.errors import DecodeError, EncodeError

logger = logging.getLogger(__name__)

JSONDict = Dict[str, Any]


def _load(data: bytes) -> Any:
    if not data:
        raise DecodeError("Event payload is empty")
    try:
        return json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise DecodeError(f"Event payload is not valid JSON: {e}") from e


def _dump(value: Any) -> bytes:
    try:
        return json.dumps(value, ensure_ascii=False).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise EncodeError(f"Result is not JSON serializable: {e}") from e


# =============================================================================
# UNTYPED (JSON OBJECT)
# =============================================================================

def decode_event(data: bytes) -> JSONDict:
    """Decode an event payload that must be a JSON object."""
    event = _load(data)
    if not isinstance(event, dict):
        raise DecodeError(f"Expected a JSON object, got {type(event).__name__}")
    return event


def encode_result(result: JSONDict) -> bytes:
    """Encode an untyped lambda's result, which must be a JSON object."""
    if not isinstance(result, dict):
        raise EncodeError(f"Expected a dict result, got {type(result).__name__}")
    return _dump(result)


# =============================================================================
# TYPED
# =============================================================================

@lru_cache(maxsize=None)
def type_adapter(tp: Any) -> TypeAdapter:
    """Cached pydantic adapter for a lambda's input or output type."""
    return TypeAdapter(tp)


def _type_name(tp: Any) -> str:
    return getattr(tp, "__name__", str(tp))


def decode_typed(data: bytes, input_type: Any) -> Any:
    """Decode an event payload into an instance of input_type."""
    payload = _load(data)
    try:
        return type_adapter(input_type).validate_python(payload)
    except ValidationError as e:
        raise DecodeError(f"Could not decode {_type_name(input_type)}: {e}") from e


def encode_typed(result: Any, output_type: Any) -> bytes:
    """Encode a typed lambda's result, checking it against output_type."""
    if isinstance(output_type, type) and not isinstance(result, output_type):
        raise EncodeError(
            f"Expected a {_type_name(output_type)} result, got {type(result).__name__}"
        )
    try:
        payload = type_adapter(output_type).dump_python(result, mode="json")
    except Exception as e:
        raise EncodeError(f"Could not convert result: {e}") from e
    return _dump(payload)


# =============================================================================
# ERROR REPORTS
# =============================================================================

def error_message(error: BaseException) -> str:
    """Human-readable message for a failed invocation, even if str() breaks."""
    try:
        message = str(error)
    except Exception:
        try:
            message = repr(error)
        except Exception:
            message = ""
    return message or type(error).__name__


def encode_error(error: BaseException) -> bytes:
    """Encode the {"errorMessage": ...} body posted to the error endpoint."""
    return json.dumps({"errorMessage": error_message(error)}, ensure_ascii=False).encode("utf-8")
