"""
ibisdm/exceptions.py - Unified Error Hierarchy

All ibisdm-specific exceptions live here. Every layer raises typed
subclasses of IbisError, never bare Exception.

Import from here, not from individual modules:
    from ibisdm.exceptions import EmptyStackError, IrrelevantAnswerError

Hierarchy:
    IbisError
    ├── StructuralError          fatal, propagate out of step()
    │   ├── EmptyStackError
    │   ├── TypeViolationError
    │   ├── FieldTypeMismatchError
    │   └── PlanExecutionError
    ├── DomainError
    │   ├── DomainViolationError
    │   ├── DomainConfigError
    │   └── DomainFileError
    ├── DiscourseError           recovered by the engine with an ICM move
    │   ├── IrrelevantAnswerError
    │   └── ParseFailureError
    └── EngineError
        ├── IterationLimitError
        └── RuleConfigError
"""

from __future__ import annotations

from typing import Any


# ─────────────────────────────────────────────────────────────────────────────
# Root
# ─────────────────────────────────────────────────────────────────────────────

class IbisError(Exception):
    """Base class for all ibisdm exceptions."""


# ─────────────────────────────────────────────────────────────────────────────
# Structural layer (containers, records, plan execution)
# ─────────────────────────────────────────────────────────────────────────────

class StructuralError(IbisError):
    """Base for container and plan contract violations. Never recovered."""


class EmptyStackError(StructuralError):
    """pop() or top() on an empty Stack / StackSet."""

    def __init__(self, operation: str = "pop", message: str = "") -> None:
        self.operation = operation
        super().__init__(message or f"Cannot {operation}() an empty stack.")


class TypeViolationError(StructuralError):
    """A container validator rejected an element."""

    def __init__(self, value: Any, message: str = "") -> None:
        self.value = value
        super().__init__(message or f"Value rejected by container validator: {value!r}")


class FieldTypeMismatchError(StructuralError):
    """A Record write does not match the attached schema."""

    def __init__(self, field: str, expected: Any, actual: Any, message: str = "") -> None:
        self.field = field
        self.expected = expected
        self.actual = actual
        super().__init__(
            message or f"Field '{field}' expects {expected}, got {actual}."
        )


class PlanExecutionError(StructuralError):
    """A plan constructor's precondition does not hold when executed."""


# ─────────────────────────────────────────────────────────────────────────────
# Domain layer
# ─────────────────────────────────────────────────────────────────────────────

class DomainError(IbisError):
    """Base for domain modelling errors."""


class DomainViolationError(DomainError):
    """A semantic object does not conform to the domain."""


class DomainConfigError(DomainError):
    """The domain declaration itself is inconsistent (caught at construction)."""


class DomainFileError(DomainError):
    """A domain file could not be read or failed validation."""


# ─────────────────────────────────────────────────────────────────────────────
# Discourse layer
# ─────────────────────────────────────────────────────────────────────────────

class DiscourseError(IbisError):
    """Base for conversational errors. The engine answers these with an ICM."""


class IrrelevantAnswerError(DiscourseError):
    """An answer does not address the question it was resolved against."""

    def __init__(self, answer: Any, question: Any = None, message: str = "") -> None:
        self.answer = answer
        self.question = question
        if not message:
            if question is None:
                message = f"Answer '{answer}' does not address any open question."
            else:
                message = f"Answer '{answer}' is not relevant to '{question}'."
        super().__init__(message)


class ParseFailureError(DiscourseError):
    """The grammar found no licensed reading of an utterance."""

    def __init__(self, utterance: str, message: str = "") -> None:
        self.utterance = utterance
        super().__init__(message or f"Could not interpret: {utterance!r}")


# ─────────────────────────────────────────────────────────────────────────────
# Engine layer
# ─────────────────────────────────────────────────────────────────────────────

class EngineError(IbisError):
    """Base for update-engine control errors."""


class IterationLimitError(EngineError):
    """A turn hit its rule-firing or plan-step bound without settling."""


class RuleConfigError(EngineError):
    """The configured rule priority names unknown or duplicate rules."""


# ─────────────────────────────────────────────────────────────────────────────
# Convenience: all public names
# ─────────────────────────────────────────────────────────────────────────────

__all__ = [
    "IbisError",
    # Structural
    "StructuralError",
    "EmptyStackError",
    "TypeViolationError",
    "FieldTypeMismatchError",
    "PlanExecutionError",
    # Domain
    "DomainError",
    "DomainViolationError",
    "DomainConfigError",
    "DomainFileError",
    # Discourse
    "DiscourseError",
    "IrrelevantAnswerError",
    "ParseFailureError",
    # Engine
    "EngineError",
    "IterationLimitError",
    "RuleConfigError",
]
