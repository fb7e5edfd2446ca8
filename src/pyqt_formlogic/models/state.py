"""Runtime state exposed to rendering and submission layers."""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple


@dataclass(frozen=True)
class FieldRuntimeState:
    """Per-field flags, fully recomputed on every pass."""
    hidden: bool = False
    disabled: bool = False
    readonly: bool = False
    required: bool = False

    def as_dict(self) -> Dict[str, bool]:
        return {
            "hidden": self.hidden,
            "disabled": self.disabled,
            "readonly": self.readonly,
            "required": self.required,
        }


@dataclass(frozen=True)
class FormStatus:
    """Aggregate status read by FormState conditions."""
    valid: bool = True
    submitting: bool = False
    current_page: int = 0
    page_validity: Tuple[bool, ...] = ()

    @property
    def invalid(self) -> bool:
        return not self.valid

    def page_invalid(self, page_index: Optional[int] = None) -> bool:
        index = self.current_page if page_index is None else page_index
        if 0 <= index < len(self.page_validity):
            return not self.page_validity[index]
        return False


@dataclass(frozen=True)
class ValueExclusionConfig:
    """One tier of value-exclusion settings; ``None`` defers to the next tier."""
    exclude_value_if_hidden: Optional[bool] = None
    exclude_value_if_disabled: Optional[bool] = None
    exclude_value_if_readonly: Optional[bool] = None

    @classmethod
    def from_config(cls, config: Optional[Mapping[str, Any]]) -> "ValueExclusionConfig":
        config = config or {}
        return cls(
            exclude_value_if_hidden=config.get("excludeValueIfHidden"),
            exclude_value_if_disabled=config.get("excludeValueIfDisabled"),
            exclude_value_if_readonly=config.get("excludeValueIfReadonly"),
        )


@dataclass
class FormOptions:
    """Per-form settings passed to FormLogicManager."""
    value_exclusion: ValueExclusionConfig = field(default_factory=ValueExclusionConfig)
    current_page: int = 0
    external_data: Dict[str, Any] = field(default_factory=dict)
