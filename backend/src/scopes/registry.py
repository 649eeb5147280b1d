"""Scope registry — central lookup for the scope renderers."""

from typing import Any, Callable

RenderFn = Callable[..., Any]

_REGISTRY: dict[str, dict] = {}


def register(scope_id: str, fn: RenderFn, name: str, default_size: tuple[int, int]):
    """Register a scope renderer."""
    _REGISTRY[scope_id] = {
        "fn": fn,
        "name": name,
        "default_size": default_size,
    }


def get(scope_id: str) -> dict | None:
    """Get renderer info by ID."""
    return _REGISTRY.get(scope_id)


def ids() -> list[str]:
    return list(_REGISTRY.keys())


def list_all() -> list[dict]:
    """List all registered scopes with metadata."""
    return [
        {"id": sid, "name": info["name"], "default_size": info["default_size"]}
        for sid, info in _REGISTRY.items()
    ]


def _auto_register():
    """Import and register the built-in scopes, in display order."""
    from scopes import histogram, parade, vectorscope, waveform

    for mod in [waveform, parade, vectorscope, histogram]:
        register(mod.SCOPE_ID, mod.render, mod.SCOPE_NAME, mod.DEFAULT_SIZE)


_auto_register()
