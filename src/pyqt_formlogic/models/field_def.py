"""Static field definitions."""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

from pyqt_formlogic.exceptions import FormConfigurationError
from pyqt_formlogic.models.http import UNSET
from pyqt_formlogic.models.logic import DerivationRule, LogicRule, parse_logic
from pyqt_formlogic.models.schema import SchemaApplication
from pyqt_formlogic.models.state import ValueExclusionConfig
from pyqt_formlogic.models.validator import SHORTHAND_KEYS, ValidatorEntry

GROUP = "group"
ARRAY = "array"
PAGE = "page"
ROW = "row"
TEXT = "text"

CONTAINER_TYPES = frozenset({GROUP, ARRAY, PAGE, ROW})
FLATTENING_TYPES = frozenset({PAGE, ROW})
BUTTON_TYPES = frozenset({"button", "submit", "next", "previous", "addArrayItem", "removeArrayItem"})
DISPLAY_TYPES = BUTTON_TYPES | {TEXT}


@dataclass(frozen=True)
class FieldDef:
    """One entry of the static field configuration.

    Containers carry ``fields``: children for group/page/row, the per-item
    template for arrays.
    """
    key: str
    type: str = "input"
    fields: Tuple["FieldDef", ...] = ()
    value: Any = UNSET
    label: Optional[str] = None
    hidden: bool = False
    disabled: bool = False
    readonly: bool = False
    required: bool = False
    shorthand: Tuple[Tuple[str, Any], ...] = ()
    validators: Tuple[ValidatorEntry, ...] = ()
    schemas: Tuple[SchemaApplication, ...] = ()
    logic: Tuple[LogicRule, ...] = ()
    value_exclusion: ValueExclusionConfig = field(default_factory=ValueExclusionConfig)
    props: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def is_container(self) -> bool:
        return self.type in CONTAINER_TYPES

    @property
    def is_flattening(self) -> bool:
        return self.type in FLATTENING_TYPES

    @property
    def is_button(self) -> bool:
        return self.type in BUTTON_TYPES

    @property
    def has_value(self) -> bool:
        """False for display-only fields and layout containers."""
        return self.type not in DISPLAY_TYPES and not self.is_flattening

    @classmethod
    def from_config(cls, config: Any) -> "FieldDef":
        if isinstance(config, FieldDef):
            return config
        if not isinstance(config, Mapping):
            raise FormConfigurationError(f"Field definition must be a mapping, got {type(config).__name__}")
        key = config.get("key")
        if not key or not isinstance(key, str):
            raise FormConfigurationError(f"Field definition requires a string 'key': {dict(config)!r}")
        if "." in key or "[" in key:
            raise FormConfigurationError(f"Field key '{key}' must not contain path separators")

        field_type = config.get("type", "input")
        children = config.get("fields", ())
        if children and field_type not in CONTAINER_TYPES:
            raise FormConfigurationError(f"Field '{key}' of type '{field_type}' cannot have child fields")

        logic = [parse_logic(rule) for rule in config.get("logic", ())]
        if config.get("derivation"):
            logic.append(DerivationRule(expression=config["derivation"]))

        shorthand = tuple(
            (name, config[name]) for name in SHORTHAND_KEYS
            if name != "required" and config.get(name) is not None
        )
        schemas = config.get("schemas", ())
        if isinstance(schemas, (str, Mapping)):
            schemas = (schemas,)

        known = {
            "key", "type", "fields", "value", "label", "hidden", "disabled", "readonly",
            "required", "validators", "schemas", "logic", "derivation", *SHORTHAND_KEYS,
            "excludeValueIfHidden", "excludeValueIfDisabled", "excludeValueIfReadonly",
        }
        return cls(
            key=key,
            type=field_type,
            fields=tuple(cls.from_config(child) for child in children),
            value=config.get("value", UNSET),
            label=config.get("label"),
            hidden=bool(config.get("hidden", False)),
            disabled=bool(config.get("disabled", False)),
            readonly=bool(config.get("readonly", False)),
            required=bool(config.get("required", False)),
            shorthand=shorthand,
            validators=tuple(ValidatorEntry.from_config(v) for v in config.get("validators", ())),
            schemas=tuple(SchemaApplication.from_config(s) for s in schemas),
            logic=tuple(logic),
            value_exclusion=ValueExclusionConfig.from_config(config),
            props={k: v for k, v in config.items() if k not in known},
        )
