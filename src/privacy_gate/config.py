"""YAML/dict config loader for privacy-gate.

Supports loading from a YAML file or a plain dict (for embedding in a
larger application config).

Example YAML:

    privacy_gate:
      enabled: true
      default_tier: private
      log_level: INFO
      credential_pool:
        - pool-a
        - pool-b
      audit:
        enabled: true
        path: ~/.privacy-gate/audit.db
      local_store:
        path: ~/.privacy-gate/local.db
"""

from __future__ import annotations
import logging
import os
import threading
from pathlib import Path
from typing import Any, Sequence

from .middleware import PrivacyMiddleware
from .router import CredentialPool, PrivacyRoutedResult, route_for
from .streaming import StreamingRestorer
from .types import ChatMessage, PrivacyTier

DEFAULT_AUDIT_DB = os.environ.get(
    "PRIVACY_GATE_AUDIT_DB",
    str(Path.home() / ".privacy-gate" / "audit.db"),
)
DEFAULT_LOCAL_DB = str(Path.home() / ".privacy-gate" / "local.db")
DEFAULT_LOG_LEVEL = os.environ.get("PRIVACY_GATE_LOG_LEVEL", "WARNING")


class _NoopMiddleware:
    """Pass-through middleware when the gate is disabled."""
    def __init__(self, tier: PrivacyTier) -> None:
        self.tier = tier
    def pre_send(self, messages: Sequence[ChatMessage]) -> PrivacyRoutedResult:
        return PrivacyRoutedResult(messages=list(messages), route=route_for(self.tier))
    def post_receive(self, text: str) -> str:
        return text
    def stream_restorer(self) -> StreamingRestorer:
        return StreamingRestorer({})
    @property
    def stats(self) -> dict:
        return {"tier": self.tier.value, "placeholders": 0, "detected": []}


def load_config(data: dict[str, Any]) -> dict[str, Any]:
    """Normalize a config dict (from YAML or inline)."""
    # Support nested under "privacy_gate" key or flat
    if "privacy_gate" in data:
        data = data["privacy_gate"] or {}

    audit = data.get("audit") or {}
    local_store = data.get("local_store") or {}
    return {
        "enabled": data.get("enabled", True),
        "default_tier": PrivacyTier(data.get("default_tier", "community")),
        "credential_pool": list(data.get("credential_pool") or []),
        "audit_enabled": audit.get("enabled", True),
        "audit_path": audit.get("path", DEFAULT_AUDIT_DB),
        "local_store_path": local_store.get("path", DEFAULT_LOCAL_DB),
        "log_level": str(data.get("log_level", DEFAULT_LOG_LEVEL)).upper(),
    }


def load_from_yaml(path: str | Path) -> dict[str, Any]:
    """Load config from a YAML file."""
    import yaml
    with open(path) as f:
        return load_config(yaml.safe_load(f) or {})


def create_middleware(
    config: dict[str, Any],
    tier: PrivacyTier | str | None = None,
) -> PrivacyMiddleware | _NoopMiddleware:
    """Create a middleware for one request from a config dict."""
    cfg = load_config(config) if "audit_enabled" not in config else config
    resolved = PrivacyTier(tier) if tier is not None else cfg["default_tier"]

    if not cfg["enabled"]:
        return _NoopMiddleware(resolved)

    pool = _pool_for(cfg["credential_pool"]) if cfg["credential_pool"] else None
    return PrivacyMiddleware.create(resolved, pool=pool)


# One pool per distinct id list, kept for the life of the process
_POOLS: dict[tuple[str, ...], CredentialPool] = {}
_POOLS_LOCK = threading.Lock()


def _pool_for(ids: Sequence[str]) -> CredentialPool:
    key = tuple(ids)
    with _POOLS_LOCK:
        pool = _POOLS.get(key)
        if pool is None:
            pool = _POOLS[key] = CredentialPool(key)
        return pool


def configure_logging(level: str = DEFAULT_LOG_LEVEL) -> None:
    """Root logging setup for the CLI and sidecar entry points."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
