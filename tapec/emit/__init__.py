"""Target emitters for lowered tape machines."""

from __future__ import annotations

from typing import Dict, Type

from ..errors import EmitError
from .base import DEFAULT_CAPABILITIES, Capabilities, Emitter
from .c import CEmitter
from .llvm import LlvmEmitter

EMITTERS: Dict[str, Type[Emitter]] = {
    LlvmEmitter.name: LlvmEmitter,
    CEmitter.name: CEmitter,
}


def get_emitter(name: str, capabilities: Capabilities = DEFAULT_CAPABILITIES, **kwargs) -> Emitter:
    try:
        cls = EMITTERS[name]
    except KeyError:
        raise EmitError(f"unknown target '{name}' (known: {', '.join(sorted(EMITTERS))})") from None
    return cls(capabilities, **kwargs)


__all__ = [
    "Capabilities",
    "CEmitter",
    "DEFAULT_CAPABILITIES",
    "EMITTERS",
    "Emitter",
    "LlvmEmitter",
    "get_emitter",
]
