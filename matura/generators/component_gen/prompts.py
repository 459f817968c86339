"""Prompt builders for the generation passes."""
import json
from typing import Iterable, List, Optional

from matura.generators.component_gen.utils import component_name, crud_endpoint
from matura.inference.types import AppSchema, DesignSpec, Intent
from matura.providers.base import FunctionSpec

CODE_SYSTEM_PROMPT = (
    "You write production-quality Next.js 14 client components in TypeScript using "
    "Tailwind CSS and shadcn/ui (imported from '@/components/ui/*'). "
    "Always start with 'use client', import every hook and component you use, "
    "type every useState call, and export the component as default."
)

COMPONENT_FUNCTION = FunctionSpec(
    name="generate_component",
    description="Return the complete source of one React page component.",
    parameters={
        "type": "object",
        "properties": {
            "component_code": {"type": "string", "description": "Complete TSX source"},
            "notes": {"type": "string"},
        },
        "required": ["component_code"],
    },
)

COMPLETE_APP_FUNCTION = FunctionSpec(
    name="generate_complete_app",
    description="Confirm the table schema and return the complete page component in one step.",
    parameters={
        "type": "object",
        "properties": {
            "app_analysis": {"type": "string"},
            "table_name": {"type": "string"},
            "component_code": {"type": "string", "description": "Complete TSX source"},
        },
        "required": ["table_name", "component_code"],
    },
)

REVIEW_FUNCTION = FunctionSpec(
    name="review_component",
    description="Review a generated component and optionally return an improved version.",
    parameters={
        "type": "object",
        "properties": {
            "score": {"type": "number", "description": "0-100"},
            "issues": {"type": "array", "items": {"type": "string"}},
            "improved_code": {"type": "string"},
        },
        "required": ["score", "issues"],
    },
)


def contract_text(schema: AppSchema) -> str:
    endpoint = crud_endpoint(schema.table_name)
    return (
        f"Data API (already implemented):\n"
        f"- GET {endpoint} -> {{ data: Record[] }}\n"
        f"- POST {endpoint} with JSON body -> {{ data: Record }}\n"
        f"- PUT {endpoint}?id=<id> with JSON body -> {{ data: Record }}\n"
        f"- DELETE {endpoint}?id=<id> -> {{ success: true }}\n"
        f"The component must use all four."
    )


def schema_text(schema: AppSchema) -> str:
    return json.dumps(schema.to_dict(), ensure_ascii=False, indent=2)


def design_text(style: Optional[DesignSpec]) -> str:
    if style is None:
        return "Design: clean, modern, neutral palette."
    return "Design: " + json.dumps(
        {"style": style.style, "mood": style.mood, "colors": style.colors, "typography": style.typography},
        ensure_ascii=False,
    )


def base_context(schema: AppSchema, intent: Intent, style: Optional[DesignSpec]) -> List[str]:
    return [
        f"App: {intent.primary_purpose}",
        f"Category: {intent.category}; complexity: {intent.complexity}",
        "Features: " + ", ".join(intent.key_features),
        f"Table schema:\n{schema_text(schema)}",
        contract_text(schema),
        design_text(style),
        f"Component name: {component_name(schema)}",
    ]


def pass_prompt(pass_name: str, context: List[str], previous: Iterable[str]) -> str:
    instructions = {
        "requirements": "List the concrete user stories and screen requirements for this app.",
        "architecture": "Describe the component state, data flow and CRUD handlers, based on the requirements.",
        "design": "Describe the layout, Tailwind classes and shadcn/ui components to use, based on the architecture.",
        "implementation": "Write the complete component source following everything above.",
    }
    parts = list(context)
    for i, prev in enumerate(previous, start=1):
        parts.append(f"--- previous pass {i} ---\n{prev}")
    parts.append(instructions[pass_name])
    return "\n\n".join(parts)


def regenerate_prompt(context: List[str], previous_source: str, recent_errors: List[str]) -> str:
    parts = list(context)
    parts.append(f"--- previous attempt ---\n{previous_source}")
    parts.append("The previous attempt failed validation:\n" + "\n".join(f"- {e}" for e in recent_errors))
    parts.append("Write the complete corrected component source.")
    return "\n\n".join(parts)


def review_prompt(context: List[str], source: str) -> str:
    return "\n\n".join(list(context) + [
        f"--- component ---\n{source}",
        "Score the component 0-100 for correctness, UX and code quality. "
        "List concrete issues. Return improved_code only if you fixed something.",
    ])
