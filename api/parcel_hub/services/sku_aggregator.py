# parcel_hub/services/sku_aggregator.py
from __future__ import annotations
from typing import Dict, List, Iterable

from parcel_hub.services.types import SkuCount


def aggregate_skus(tokens: Iterable[str]) -> Dict[str, SkuCount]:
    """
    Count repeated SKU tokens.

    Example:
        ["6", "5", "9", "6"] -> {"6": qty 2, "5": qty 1, "9": qty 1}

    Keys are lower-cased tokens in first-appearance order; `original` keeps
    the casing of the first occurrence (used in log/error text only).
    """
    counts: Dict[str, SkuCount] = {}
    for raw in tokens:
        token = (raw or "").strip()
        if not token:
            continue
        key = token.lower()
        entry = counts.get(key)
        if entry is None:
            counts[key] = SkuCount(quantity=1, original=token)
        else:
            entry.quantity += 1
    return counts


def expand_counts(counts: Dict[str, SkuCount]) -> List[str]:
    """Inverse of aggregate_skus: repeat each original token `quantity` times."""
    out: List[str] = []
    for entry in counts.values():
        out.extend([entry.original] * entry.quantity)
    return out
