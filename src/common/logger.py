"""
Session-tagged logging for the engine and the provider gateway.

Messages are prefixed with `[session:xxxxxxxx] [component]` so one interview
can be followed through interleaved logs. DEBUG_MODE=true lowers every logger
obtained here to DEBUG.
"""

import logging
import os
from typing import Optional


_DEBUG_MODE = os.getenv("DEBUG_MODE", "false").lower() == "true"


def set_debug_mode(enabled: bool) -> None:
    global _DEBUG_MODE
    _DEBUG_MODE = enabled


def is_debug_mode() -> bool:
    return _DEBUG_MODE


class SessionLogger(logging.LoggerAdapter):
    """LoggerAdapter that prefixes each message with its session and component tags."""

    def process(self, msg, kwargs):
        tags = []
        if self.extra.get("session_id"):
            tags.append(f"[session:{self.extra['session_id'][:8]}]")
        if self.extra.get("component"):
            tags.append(f"[{self.extra['component']}]")
        if tags:
            msg = f"{' '.join(tags)} {msg}"
        return msg, kwargs


def get_logger(name: str, session_id: Optional[str] = None, component: Optional[str] = None) -> SessionLogger:
    """Logger for one session; usage: get_logger(__name__, session_id=..., component="engine")."""
    logger = logging.getLogger(name)
    if _DEBUG_MODE:
        logger.setLevel(logging.DEBUG)
    return SessionLogger(logger, {"session_id": session_id, "component": component})
