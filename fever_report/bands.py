"""
Age-band taxonomy, per-band counting, and visit/fever combination.

The taxonomy is fixed and two levels deep. build_counts() tallies one age
list against it; combine_counts() pairs a visit tree with a fever tree by
band id and never fails, whatever shape the fever tree has.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Iterable, Sequence


@dataclass(frozen=True)
class AgeBand:
    id: str
    label: str
    min_age: int
    max_age: int
    children: tuple["AgeBand", ...] = ()

    def contains(self, age: int) -> bool:
        return self.min_age <= age <= self.max_age


AGE_BANDS: tuple[AgeBand, ...] = (
    AgeBand(
        "0-6",
        "0-6세",
        0,
        6,
        children=(
            AgeBand("0", "0세", 0, 0),
            AgeBand("1-6", "1-6세", 1, 6),
        ),
    ),
    AgeBand(
        "7-18",
        "7-18세",
        7,
        18,
        children=(
            AgeBand("7-12", "7-12세", 7, 12),
            AgeBand("13-18", "13-18세", 13, 18),
        ),
    ),
    AgeBand("19-49", "19-49세", 19, 49),
    AgeBand("50-64", "50-64세", 50, 64),
    AgeBand("65+", "65세 이상", 65, 120),
)


@dataclass(frozen=True)
class CountNode:
    band_id: str
    label: str
    count: int
    children: tuple["CountNode", ...] = ()


@dataclass(frozen=True)
class CombinedReportNode:
    band_id: str
    label: str
    total_count: int
    fever_count: int
    children: tuple["CombinedReportNode", ...] = ()

    @property
    def ratio(self) -> float:
        return fever_ratio(self.fever_count, self.total_count)

    @property
    def fever_exceeds_total(self) -> bool:
        return self.fever_count > self.total_count

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.band_id,
            "label": self.label,
            "totalCount": self.total_count,
            "feverCount": self.fever_count,
            "children": [child.to_dict() for child in self.children],
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "CombinedReportNode":
        return cls(
            band_id=str(payload.get("id", "")),
            label=str(payload.get("label", "")),
            total_count=_as_count(payload.get("totalCount")),
            fever_count=_as_count(payload.get("feverCount")),
            children=tuple(
                cls.from_dict(child)
                for child in payload.get("children") or []
                if isinstance(child, dict)
            ),
        )


def _as_count(value: Any) -> int:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(number):
        return 0
    return int(number)


def build_counts(ages: Iterable[int], bands: Sequence[AgeBand] = AGE_BANDS) -> tuple[CountNode, ...]:
    group_counts = [0] * len(bands)
    child_counts = [[0] * len(band.children) for band in bands]

    for age in ages:
        for group_idx, band in enumerate(bands):
            if not band.contains(age):
                continue
            group_counts[group_idx] += 1
            for child_idx, child in enumerate(band.children):
                if child.contains(age):
                    child_counts[group_idx][child_idx] += 1

    return tuple(
        CountNode(
            band_id=band.id,
            label=band.label,
            count=group_counts[group_idx],
            children=tuple(
                CountNode(band_id=child.id, label=child.label, count=child_counts[group_idx][child_idx])
                for child_idx, child in enumerate(band.children)
            ),
        )
        for group_idx, band in enumerate(bands)
    )


def _find_node(nodes: Sequence[CountNode], band_id: str) -> CountNode | None:
    for node in nodes:
        if node.band_id == band_id:
            return node
    return None


def combine_counts(
    total_tree: Sequence[CountNode],
    fever_tree: Sequence[CountNode],
) -> tuple[CombinedReportNode, ...]:
    combined = []
    for group in total_tree:
        fever_group = _find_node(fever_tree, group.band_id)
        fever_children = fever_group.children if fever_group else ()
        children = []
        for child in group.children:
            fever_child = _find_node(fever_children, child.band_id)
            children.append(
                CombinedReportNode(
                    band_id=child.band_id,
                    label=child.label,
                    total_count=child.count,
                    fever_count=fever_child.count if fever_child else 0,
                )
            )
        combined.append(
            CombinedReportNode(
                band_id=group.band_id,
                label=group.label,
                total_count=group.count,
                fever_count=fever_group.count if fever_group else 0,
                children=tuple(children),
            )
        )
    return tuple(combined)


def fever_ratio(fever_count: int | float, total_count: int | float) -> float:
    if not total_count:
        return 0.0
    return fever_count / total_count * 100


def overall_ratio(total_visit: int, total_fever: int) -> float:
    return fever_ratio(total_fever, total_visit)


def format_percent(value: float) -> str:
    return f"{value:.1f}%"


def chart_rows(groups: Sequence[CombinedReportNode]) -> list[dict[str, Any]]:
    return [
        {
            "label": group.label,
            "ratio": group.ratio,
            "fever_count": group.fever_count,
            "total_count": group.total_count,
        }
        for group in groups
    ]


def report_rows(groups: Sequence[CombinedReportNode]) -> list[dict[str, Any]]:
    """Flatten the band tree into table rows: each group followed by its children."""
    rows = []
    for group in groups:
        for level, node in [(0, group)] + [(1, child) for child in group.children]:
            rows.append(
                {
                    "level": level,
                    "band_id": node.band_id,
                    "label": node.label,
                    "total_count": node.total_count,
                    "fever_count": node.fever_count,
                    "ratio": format_percent(node.ratio),
                }
            )
    return rows
