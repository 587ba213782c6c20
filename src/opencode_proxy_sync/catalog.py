"""Static model catalog for the managed OpenCode provider.

Every model the proxy can serve is listed here once, together with the
token limits, modalities and thinking variants OpenCode needs to render it.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Any, Optional


class VariantFamily(Enum):
    """Closed set of thinking-config shapes a model can expose."""

    CLAUDE_THINKING = "claude-thinking"
    GEMINI_25_THINKING = "gemini-2.5-thinking"
    GEMINI_3_FLASH = "gemini-3-flash"
    GEMINI_3_PRO = "gemini-3-pro"


# Budget tables are ordered; the label order is the order OpenCode lists them.
_BUDGET_TABLES: dict[VariantFamily, tuple[tuple[str, int], ...]] = {
    VariantFamily.CLAUDE_THINKING: (
        ("low", 8192),
        ("medium", 16384),
        ("high", 24576),
        ("max", 32768),
    ),
    VariantFamily.GEMINI_25_THINKING: (
        ("low", 8192),
        ("medium", 12288),
        ("high", 16384),
        ("max", 24576),
    ),
}

_LEVEL_TABLES: dict[VariantFamily, tuple[str, ...]] = {
    VariantFamily.GEMINI_3_FLASH: ("minimal", "low", "medium", "high"),
    VariantFamily.GEMINI_3_PRO: ("low", "high"),
}

_TEXT_IMAGE_PDF = ("text", "image", "pdf")


@dataclass(frozen=True)
class ModelDef:
    id: str
    name: str
    context_limit: int
    output_limit: int
    input_modalities: tuple[str, ...]
    output_modalities: tuple[str, ...]
    reasoning: bool = False
    variant_family: Optional[VariantFamily] = None


MODEL_CATALOG: tuple[ModelDef, ...] = (
    ModelDef(
        id="claude-sonnet-4-5",
        name="Claude Sonnet 4.5",
        context_limit=200_000,
        output_limit=64_000,
        input_modalities=_TEXT_IMAGE_PDF,
        output_modalities=("text",),
    ),
    ModelDef(
        id="claude-sonnet-4-5-thinking",
        name="Claude Sonnet 4.5 Thinking",
        context_limit=200_000,
        output_limit=64_000,
        input_modalities=_TEXT_IMAGE_PDF,
        output_modalities=("text",),
        reasoning=True,
        variant_family=VariantFamily.CLAUDE_THINKING,
    ),
    ModelDef(
        id="claude-opus-4-5-thinking",
        name="Claude Opus 4.5 Thinking",
        context_limit=200_000,
        output_limit=64_000,
        input_modalities=_TEXT_IMAGE_PDF,
        output_modalities=("text",),
        reasoning=True,
        variant_family=VariantFamily.CLAUDE_THINKING,
    ),
    ModelDef(
        id="gemini-3-pro-high",
        name="Gemini 3 Pro High",
        context_limit=1_048_576,
        output_limit=65_535,
        input_modalities=_TEXT_IMAGE_PDF,
        output_modalities=("text", "image"),
        reasoning=True,
        variant_family=VariantFamily.GEMINI_3_PRO,
    ),
    ModelDef(
        id="gemini-3-pro-low",
        name="Gemini 3 Pro Low",
        context_limit=1_048_576,
        output_limit=65_535,
        input_modalities=_TEXT_IMAGE_PDF,
        output_modalities=("text", "image"),
        reasoning=True,
        variant_family=VariantFamily.GEMINI_3_PRO,
    ),
    ModelDef(
        id="gemini-3-flash",
        name="Gemini 3 Flash",
        context_limit=1_048_576,
        output_limit=65_536,
        input_modalities=_TEXT_IMAGE_PDF,
        output_modalities=("text",),
        reasoning=True,
        variant_family=VariantFamily.GEMINI_3_FLASH,
    ),
    ModelDef(
        id="gemini-3-pro-image",
        name="Gemini 3 Pro Image",
        context_limit=1_048_576,
        output_limit=65_535,
        input_modalities=_TEXT_IMAGE_PDF,
        output_modalities=("text", "image"),
    ),
    ModelDef(
        id="gemini-2.5-flash",
        name="Gemini 2.5 Flash",
        context_limit=1_048_576,
        output_limit=65_536,
        input_modalities=_TEXT_IMAGE_PDF,
        output_modalities=("text",),
    ),
    ModelDef(
        id="gemini-2.5-flash-lite",
        name="Gemini 2.5 Flash Lite",
        context_limit=1_048_576,
        output_limit=65_536,
        input_modalities=_TEXT_IMAGE_PDF,
        output_modalities=("text",),
    ),
    ModelDef(
        id="gemini-2.5-flash-thinking",
        name="Gemini 2.5 Flash Thinking",
        context_limit=1_048_576,
        output_limit=65_536,
        input_modalities=_TEXT_IMAGE_PDF,
        output_modalities=("text",),
        reasoning=True,
        variant_family=VariantFamily.GEMINI_25_THINKING,
    ),
    ModelDef(
        id="gemini-2.5-pro",
        name="Gemini 2.5 Pro",
        context_limit=1_048_576,
        output_limit=65_536,
        input_modalities=_TEXT_IMAGE_PDF,
        output_modalities=("text",),
        reasoning=True,
    ),
)

# Ids that older releases injected into the user's own anthropic/google providers.
MANAGED_MODEL_IDS: tuple[str, ...] = tuple(model.id for model in MODEL_CATALOG)

_CATALOG_BY_ID: dict[str, ModelDef] = {model.id: model for model in MODEL_CATALOG}


def get_model_def(model_id: str) -> Optional[ModelDef]:
    return _CATALOG_BY_ID.get(model_id)


def is_catalog_model(model_id: str) -> bool:
    return model_id in _CATALOG_BY_ID


def _budget_variant(budget: int) -> dict[str, Any]:
    return {
        "thinkingConfig": {"thinkingBudget": budget},
        "thinking": {"type": "enabled", "budget_tokens": budget},
    }


def _level_variant(level: str) -> dict[str, Any]:
    return {"thinkingLevel": level}


@lru_cache(maxsize=None)
def _variants_template(family: VariantFamily) -> dict[str, Any]:
    if family in _BUDGET_TABLES:
        return {label: _budget_variant(budget) for label, budget in _BUDGET_TABLES[family]}
    if family in _LEVEL_TABLES:
        return {level: _level_variant(level) for level in _LEVEL_TABLES[family]}
    raise ValueError(f"Unknown variant family: {family!r}")


def build_variants(family: Optional[VariantFamily]) -> Optional[dict[str, Any]]:
    """Return the ``variants`` mapping for a family, or None when the model has none.

    The result is a fresh copy so callers may embed it into a document they
    go on to mutate.
    """
    if family is None:
        return None
    return copy.deepcopy(_variants_template(family))


@lru_cache(maxsize=None)
def _model_entry_template(model_id: str) -> dict[str, Any]:
    model = _CATALOG_BY_ID[model_id]
    entry: dict[str, Any] = {
        "name": model.name,
        "limit": {"context": model.context_limit, "output": model.output_limit},
        "modalities": {
            "input": list(model.input_modalities),
            "output": list(model.output_modalities),
        },
    }
    if model.reasoning:
        entry["reasoning"] = True
    if model.variant_family is not None:
        entry["variants"] = _variants_template(model.variant_family)
    return entry


def build_model_entry(model: ModelDef | str) -> dict[str, Any]:
    """Render a catalog model as the JSON object OpenCode expects under ``models``."""
    model_id = model if isinstance(model, str) else model.id
    if model_id not in _CATALOG_BY_ID:
        raise KeyError(f"Unknown catalog model: {model_id}")
    return copy.deepcopy(_model_entry_template(model_id))
