"""Learned-pattern insights: summary totals and a tabular export."""

from __future__ import annotations

from pathlib import Path

import pandas as pd
from pydantic import BaseModel, Field

from tabclf.classify.patterns import PatternStore

INSIGHT_COLUMNS = ["domain", "category", "count"]


class PatternInsights(BaseModel, frozen=True):
    """What the classifier has learned so far."""

    category_counts: dict[str, int] = Field(
        default_factory=dict,
        description="Category -> learned assignments summed over every domain.",
    )
    total_domains: int = Field(ge=0, description="Domains with at least one learned pattern.")
    learning_enabled: bool = True


def build_insights(patterns: PatternStore, *, learning_enabled: bool = True) -> PatternInsights:
    return PatternInsights(
        category_counts=patterns.category_totals(),
        total_domains=len(patterns),
        learning_enabled=learning_enabled,
    )


def patterns_frame(patterns: PatternStore) -> pd.DataFrame:
    """One row per learned ``(domain, category)`` pair, most frequent first.

    Ties keep domain then category alphabetical order so the output is
    stable between runs.
    """
    rows = [
        {"domain": domain, "category": category, "count": count}
        for domain, pattern in patterns
        for category, count in pattern.category_counts.items()
    ]
    if not rows:
        return pd.DataFrame(columns=INSIGHT_COLUMNS)
    df = pd.DataFrame(rows, columns=INSIGHT_COLUMNS)
    df = df.sort_values(["domain", "category"], kind="stable")
    df = df.sort_values("count", ascending=False, kind="stable")
    return df.reset_index(drop=True)


def export_patterns_csv(patterns: PatternStore, path: Path) -> Path:
    """Write :func:`patterns_frame` to *path* as CSV.

    Returns:
        The *path* that was written.
    """
    df = patterns_frame(patterns)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)
    return path
