"""Dataclasses for intent, schema and design data passed between pipeline stages."""
from __future__ import annotations
from dataclasses import asdict, dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

CATEGORIES = (
    "productivity", "social", "ecommerce", "finance", "health",
    "education", "creative", "entertainment", "utility",
)
COMPLEXITY_TIERS = ("simple", "moderate", "complex")

FIELD_TYPES = (
    "text", "textarea", "number", "boolean", "date", "datetime",
    "email", "url", "tel", "select", "json",
)

SYSTEM_FIELD_NAMES = ("id", "created_at", "updated_at")


@dataclass(frozen=True)
class Intent:
    """What the user wants built. Created once per request."""
    category: str
    primary_purpose: str
    target_users: Tuple[str, ...] = ()
    key_features: Tuple[str, ...] = ()
    complexity: str = "simple"
    enhanced_description: str = ""
    source: str = "fallback"

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["target_users"] = list(self.target_users)
        d["key_features"] = list(self.key_features)
        return d


@dataclass(frozen=True)
class SchemaField:
    name: str
    type: str = "text"
    required: bool = False
    label: str = ""
    default: Any = None
    options: Tuple[str, ...] = ()
    system: bool = False

    def to_dict(self) -> Dict[str, Any]:
        d = {"name": self.name, "type": self.type, "required": self.required, "label": self.label or self.name}
        if self.default is not None:
            d["default"] = self.default
        if self.options:
            d["options"] = list(self.options)
        if self.system:
            d["system"] = True
        return d


@dataclass(frozen=True)
class AppSchema:
    table_name: str
    fields: Tuple[SchemaField, ...]
    description: str = ""
    source: str = "ai"

    @property
    def field_names(self) -> List[str]:
        return [f.name for f in self.fields]

    @property
    def user_fields(self) -> List[SchemaField]:
        return [f for f in self.fields if not f.system]

    @property
    def signature(self) -> Tuple[Tuple[str, str, bool], ...]:
        """What records written to the table must look like."""
        return tuple((f.name, f.type, f.required) for f in self.fields)

    def field(self, name: str) -> Optional[SchemaField]:
        return next((f for f in self.fields if f.name == name), None)

    def with_table_name(self, table_name: str) -> "AppSchema":
        return replace(self, table_name=table_name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "table_name": self.table_name,
            "description": self.description,
            "source": self.source,
            "fields": [f.to_dict() for f in self.fields],
        }


@dataclass(frozen=True)
class DesignSpec:
    style: str
    mood: str
    colors: Dict[str, str]
    typography: Dict[str, str] = field(default_factory=dict)
    component_hints: Tuple[str, ...] = ()
    tokens: Dict[str, Any] = field(default_factory=dict)
    source: str = "fallback"

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["component_hints"] = list(self.component_hints)
        return d
