"""Summary statistics over the AOI list."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from aoi_engine.feature import AOIFeature, FeatureKind
from aoi_engine.geometry import format_area


@dataclass
class FeatureSummary:
    total: int = 0
    counts: dict[str, int] = field(default_factory=lambda: {k.value: 0 for k in FeatureKind})
    total_area_sq_m: float = 0.0
    average_area_sq_m: float = 0.0

    @property
    def total_area_text(self) -> str:
        return format_area(self.total_area_sq_m)

    @property
    def average_area_text(self) -> str:
        return format_area(self.average_area_sq_m)

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "counts": dict(self.counts),
            "total_area_sq_m": self.total_area_sq_m,
            "average_area_sq_m": self.average_area_sq_m,
            "total_area_text": self.total_area_text,
            "average_area_text": self.average_area_text,
        }


def summarize(features: Iterable[AOIFeature]) -> FeatureSummary:
    """Count features per kind and total/average their areas.

    The average only covers features that have an area.
    """
    summary = FeatureSummary()
    measured = 0
    for feature in features:
        summary.total += 1
        summary.counts[feature.kind.value] += 1
        if feature.area_sq_m:
            summary.total_area_sq_m += feature.area_sq_m
            measured += 1
    if measured:
        summary.average_area_sq_m = summary.total_area_sq_m / measured
    return summary
