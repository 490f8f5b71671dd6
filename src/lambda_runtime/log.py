# =============================================================================
# Logging Setup
# =============================================================================
# Bootstrap process logging. Lambda captures stderr into CloudWatch Logs.
# =============================================================================

import logging
import os
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = None) -> None:
    """Install a stderr handler at `level` (LOG_LEVEL env var, default INFO)."""
    level_name = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    root = logging.getLogger()
    if not any(getattr(h, "_lambda_runtime", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._lambda_runtime = True
        root.addHandler(handler)
    root.setLevel(getattr(logging, level_name, logging.INFO))
