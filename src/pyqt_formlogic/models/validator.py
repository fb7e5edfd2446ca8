"""Canonical validator entries."""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Mapping, Optional

from pyqt_formlogic.exceptions import FormConfigurationError
from pyqt_formlogic.models.conditions import AndCondition, Condition, parse_condition


class ValidatorKind(Enum):
    REQUIRED = "required"
    EMAIL = "email"
    MIN = "min"
    MAX = "max"
    MIN_LENGTH = "minLength"
    MAX_LENGTH = "maxLength"
    PATTERN = "pattern"
    CUSTOM = "custom"


# Field properties that lower into validators, in composition order
SHORTHAND_KEYS = ("required", "email", "min", "max", "minLength", "maxLength", "pattern")


@dataclass(frozen=True)
class ValidatorEntry:
    """One executable validator.

    ``expression`` is used by ``custom`` (truthy = valid). ``when`` gates the
    validator: it only runs while the condition holds.
    """
    kind: ValidatorKind
    value: Any = None
    message: Optional[str] = None
    expression: Optional[str] = None
    when: Optional[Condition] = None

    @property
    def error_key(self) -> str:
        return self.kind.value

    def gated_by(self, condition: Optional[Condition]) -> "ValidatorEntry":
        """Return a copy whose ``when`` also requires ``condition``."""
        if condition is None:
            return self
        when = condition if self.when is None else AndCondition((condition, self.when))
        return replace(self, when=when)

    @classmethod
    def from_config(cls, config: Any) -> "ValidatorEntry":
        if isinstance(config, ValidatorEntry):
            return config
        if isinstance(config, str):
            config = {"type": config}
        if not isinstance(config, Mapping):
            raise FormConfigurationError(f"Validator must be a mapping, got {type(config).__name__}")
        try:
            kind = ValidatorKind(config.get("type"))
        except ValueError:
            raise FormConfigurationError(f"Unknown validator type {config.get('type')!r}") from None
        if kind is ValidatorKind.CUSTOM and not config.get("expression"):
            raise FormConfigurationError("custom validator requires an 'expression'")
        when = config.get("when")
        return cls(
            kind=kind,
            value=config.get("value"),
            message=config.get("message") or config.get("errorMessage"),
            expression=config.get("expression"),
            when=parse_condition(when) if when is not None else None,
        )


def lower_shorthand(key: str, value: Any) -> Optional[ValidatorEntry]:
    """Lower a field shorthand property (``required: True``, ``min: 3``) to an entry."""
    if value is None or value is False:
        return None
    kind = ValidatorKind(key)
    if kind in (ValidatorKind.REQUIRED, ValidatorKind.EMAIL):
        return ValidatorEntry(kind)
    return ValidatorEntry(kind, value=value)
