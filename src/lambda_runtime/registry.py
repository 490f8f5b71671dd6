# =============================================================================
# Handler Registry
# =============================================================================
# Maps lambda names to registered Handlers. Populated before the runtime
# loop starts; read-only afterwards.
# =============================================================================

import logging
from typing import Dict, List, Optional

from lambda_runtime.handlers import Handler

logger = logging.getLogger(__name__)


class HandlerRegistry:
    """Name -> Handler mapping. The last registration for a name wins."""

    def __init__(self):
        self._handlers: Dict[str, Handler] = {}

    def register(self, name: str, handler: Handler) -> None:
        if name in self._handlers:
            logger.info(f"Replacing lambda registered under '{name}'")
        self._handlers[name] = handler
        logger.debug(f"Registered lambda '{name}' ({handler.kind.value})")

    def resolve(self, name: str) -> Optional[Handler]:
        return self._handlers.get(name)

    def names(self) -> List[str]:
        return sorted(self._handlers)

    def __contains__(self, name: str) -> bool:
        return name in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)
