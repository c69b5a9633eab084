"""Shared runtime singleton for web/CLI entrypoints."""

from __future__ import annotations

from typing import Optional

from orchestrator import FactoryRuntime, build_runtime


_RUNTIME: Optional[FactoryRuntime] = None


def get_runtime() -> FactoryRuntime:
    global _RUNTIME
    if _RUNTIME is None:
        _RUNTIME = build_runtime()
    return _RUNTIME


def set_runtime(runtime: Optional[FactoryRuntime]) -> None:
    """Replace the shared runtime (None rebuilds it on next access)."""
    global _RUNTIME
    _RUNTIME = runtime
