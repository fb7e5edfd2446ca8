"""Reusable schema definitions and references to them."""

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple

from pyqt_formlogic.exceptions import FormConfigurationError
from pyqt_formlogic.models.conditions import Condition, parse_condition
from pyqt_formlogic.models.logic import LogicRule, parse_logic
from pyqt_formlogic.models.validator import ValidatorEntry


@dataclass(frozen=True)
class SchemaApplication:
    """A reference from a field (or schema) to a named schema."""
    schema: str
    condition: Optional[Condition] = None

    @classmethod
    def from_config(cls, config: Any) -> "SchemaApplication":
        if isinstance(config, SchemaApplication):
            return config
        if isinstance(config, str):
            return cls(config)
        if not isinstance(config, Mapping) or not config.get("schema"):
            raise FormConfigurationError(f"Schema reference requires a 'schema' name: {config!r}")
        kind = config.get("type", "apply")
        if kind == "apply":
            return cls(config["schema"])
        if kind == "applyWhen":
            if "condition" not in config:
                raise FormConfigurationError("applyWhen requires a 'condition'")
            return cls(config["schema"], parse_condition(config["condition"]))
        raise FormConfigurationError(f"Unknown schema application type {kind!r}")


@dataclass(frozen=True)
class SchemaDefinition:
    name: str
    validators: Tuple[ValidatorEntry, ...] = ()
    logic: Tuple[LogicRule, ...] = ()
    sub_schemas: Tuple[SchemaApplication, ...] = ()

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "SchemaDefinition":
        if not config.get("name"):
            raise FormConfigurationError(f"Schema definition requires a 'name': {dict(config)!r}")
        return cls(
            name=config["name"],
            validators=tuple(ValidatorEntry.from_config(v) for v in config.get("validators", ())),
            logic=tuple(parse_logic(r) for r in config.get("logic", ())),
            sub_schemas=tuple(SchemaApplication.from_config(s) for s in config.get("subSchemas", config.get("schemas", ()))),
        )
