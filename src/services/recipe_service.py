"""
Recipe line persistence helpers shared by menu items and prep tasks.

Converts between caller-supplied recipe dicts, RecipeLine rows and the
immutable dto.RecipeLine the costing core reads.
"""

from typing import Any, Iterable, List, Mapping

from src.models import RecipeLine
from src.services import dto
from src.services.unit_converter import normalize_unit
from src.utils.constants import SOURCE_INVENTORY


def build_recipe_lines(lines: Iterable[Mapping[str, Any]]) -> List[RecipeLine]:
    """
    Build unattached RecipeLine rows from recipe dicts.

    Args:
        lines: Dicts with "ingredient_id", "amount", "unit" and optional
            "source" ("inventory" by default)

    Returns:
        RecipeLine rows in input order, units normalized
    """
    return [
        RecipeLine(
            ingredient_id=line["ingredient_id"],
            amount=float(line["amount"]),
            unit=normalize_unit(line["unit"]),
            source=line.get("source") or SOURCE_INVENTORY,
            position=position,
        )
        for position, line in enumerate(lines)
    ]


def to_recipe_snapshot(rows: Iterable[RecipeLine]) -> List[dto.RecipeLine]:
    """Convert RecipeLine rows into core recipe lines, ordered by position."""
    return [
        dto.RecipeLine(
            ingredient_id=row.ingredient_id,
            amount=row.amount,
            unit=row.unit,
            source=row.source or SOURCE_INVENTORY,
        )
        for row in sorted(rows, key=lambda r: r.position or 0)
    ]


def recipe_to_dicts(rows: Iterable[RecipeLine]) -> List[dict]:
    """Convert RecipeLine rows to plain dicts (for audit before/after states)."""
    return [
        {
            "ingredient_id": row.ingredient_id,
            "amount": row.amount,
            "unit": row.unit,
            "source": row.source,
        }
        for row in sorted(rows, key=lambda r: r.position or 0)
    ]
