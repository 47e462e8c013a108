"""Child resource status interpretation."""

from kubeapp.status.interpreters import (
    InterpretedStatus,
    InterpreterRegistry,
    StatusInterpreter,
    default_registry,
    generic_status,
)

__all__ = [
    "InterpretedStatus",
    "InterpreterRegistry",
    "StatusInterpreter",
    "default_registry",
    "generic_status",
]
