#!/usr/bin/env python3
# =============================================================================
# Lambda Runtime CLI
# =============================================================================
# bootstrap: entry point of the custom runtime process on Lambda.
# invoke:    run a registered lambda once, locally, against a JSON payload.
#
# Usage:
#   lambda-runtime bootstrap
#   lambda-runtime invoke index.process --json '{"name": "world"}'
#   lambda-runtime invoke index.process --file event.json --pretty
# =============================================================================

import argparse
import importlib
import json
import logging
import os
import sys
import time
import uuid

from lambda_runtime.client import FUNCTION_ARN_HEADER, DEADLINE_HEADER, REQUEST_ID_HEADER
from lambda_runtime.config import HANDLER_ENV, RuntimeConfig, split_handler
from lambda_runtime.context import build_context
from lambda_runtime.errors import LambdaRuntimeError, UnknownHandlerError
from lambda_runtime.log import configure_logging
from lambda_runtime.runtime import Runtime, get_registry
from lambda_runtime.serialization import encode_error

logger = logging.getLogger(__name__)


def load_handler_module(module_name: str):
    """Import the module half of the handler id so its lambdas register."""
    task_root = os.environ.get("LAMBDA_TASK_ROOT")
    for path in (task_root, os.getcwd()):
        if path and path not in sys.path:
            sys.path.insert(0, path)
    return importlib.import_module(module_name)


def run_bootstrap(args) -> int:
    if args.handler:
        os.environ[HANDLER_ENV] = args.handler

    try:
        config = RuntimeConfig.from_environ()
        load_handler_module(config.module_name)
        Runtime(config=config, registry=get_registry()).start()
    except LambdaRuntimeError as e:
        logger.critical(f"Runtime stopped: {e}")
        return 1
    except ImportError as e:
        logger.critical(f"Could not import handler module: {e}")
        return 1
    return 0


def _local_headers(function_name: str, timeout: float) -> dict:
    deadline_ms = int((time.time() + timeout) * 1000)
    return {
        REQUEST_ID_HEADER: str(uuid.uuid4()),
        FUNCTION_ARN_HEADER: f"arn:aws:lambda:local:000000000000:function:{function_name}",
        DEADLINE_HEADER: str(deadline_ms),
    }


def run_invoke(args) -> int:
    module_name, entrypoint = split_handler(args.handler)

    if args.file:
        with open(args.file, "rb") as f:
            event_data = f.read()
    elif args.json:
        event_data = args.json.encode("utf-8")
    else:
        event_data = b"{}"

    load_handler_module(module_name)
    handler = get_registry().resolve(entrypoint)
    if handler is None:
        raise UnknownHandlerError(entrypoint)

    environ = dict(os.environ)
    environ.setdefault("AWS_LAMBDA_FUNCTION_NAME", entrypoint)
    context = build_context(environ, _local_headers(environ["AWS_LAMBDA_FUNCTION_NAME"], args.timeout))

    outcome = handler.dispatch(event_data, context, timeout=args.timeout if handler.is_async else None)
    body = outcome.body if outcome.succeeded else encode_error(outcome.error)

    result = json.loads(body)
    if args.pretty:
        print(json.dumps(result, indent=2, ensure_ascii=False))
    else:
        print(json.dumps(result, ensure_ascii=False))

    return 0 if outcome.succeeded else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lambda-runtime",
        description="Custom AWS Lambda runtime for registered Python lambdas",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s bootstrap
  %(prog)s bootstrap --handler index.process
  %(prog)s invoke index.process --json '{"name": "world"}'
  %(prog)s invoke index.process --file event.json --pretty
        """
    )
    parser.add_argument("--log-level", help="Log level (default: LOG_LEVEL or INFO)")
    subparsers = parser.add_subparsers(dest="command")

    bootstrap = subparsers.add_parser("bootstrap", help="Serve invocations from the Runtime API")
    bootstrap.add_argument("--handler", help="Handler id, overrides _HANDLER")

    invoke = subparsers.add_parser("invoke", help="Run a lambda once with a local payload")
    invoke.add_argument("handler", help="Handler id, e.g. index.process")
    invoke.add_argument("--json", "-j", help="JSON event payload")
    invoke.add_argument("--file", "-f", help="JSON file to load the event from")
    invoke.add_argument("--timeout", "-t", type=float, default=300.0,
                        help="Seconds until the synthetic deadline / async completion timeout")
    invoke.add_argument("--pretty", "-p", action="store_true", help="Pretty print output")
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    if args.command == "bootstrap":
        return run_bootstrap(args)
    if args.command == "invoke":
        try:
            return run_invoke(args)
        except (LambdaRuntimeError, ImportError) as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
