"""Evaluation context passed to conditions, derivations and validators."""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, Mapping, Optional, Tuple

from pyqt_formlogic.core.path_utils import get_path, normalize_path, substitute_indices
from pyqt_formlogic.models.state import FormStatus

if TYPE_CHECKING:
    from pyqt_formlogic.logic.http_condition_resolver import HttpConditionResolver


@dataclass(frozen=True)
class EvaluationContext:
    """Everything a rule may read while it is evaluated.

    ``indices`` holds the array indices of the owning field, outermost first;
    ``$`` placeholders in configured paths are replaced by them.
    """
    form_value: Mapping[str, Any]
    field_path: Optional[str] = None
    owner_id: Optional[str] = None
    item_path: Optional[str] = None
    indices: Tuple[int, ...] = ()
    page_index: Optional[int] = None
    form_status: FormStatus = field(default_factory=FormStatus)
    functions: Mapping[str, Callable] = field(default_factory=dict)
    external_data: Mapping[str, Any] = field(default_factory=dict)
    http: Optional["HttpConditionResolver"] = None

    @property
    def field_value(self) -> Any:
        return get_path(self.form_value, self.field_path) if self.field_path else None

    @property
    def item_value(self) -> Any:
        return get_path(self.form_value, self.item_path) if self.item_path else None

    @property
    def index(self) -> Optional[int]:
        return self.indices[-1] if self.indices else None

    def resolve_path(self, path: str) -> str:
        """Canonical form of a configured path with ``$`` replaced by this field's indices."""
        return substitute_indices(normalize_path(path), self.indices)

    def read(self, path: str) -> Any:
        return get_path(self.form_value, self.resolve_path(path))

    def scope(self, **extra: Any) -> Dict[str, Any]:
        """Names visible to expressions."""
        scope = {
            "formValue": self.form_value,
            "fieldValue": self.field_value,
            "itemValue": self.item_value,
            "index": self.index,
            "externalData": self.external_data,
        }
        scope.update(extra)
        return scope

