"""
Group labelings.

A Stratification is an immutable mapping from subject id to group label,
carrying enough provenance (covariate, levels, cut point, components) for
the batch layer to report what was compared.
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import Hashable, Iterator, Sequence

COMPOSITE_SEPARATOR = ", "


def composite_label(parts: Sequence[tuple[str, str]]) -> str:
    """Join (covariate, label) pairs: ``"GeneA=High, GeneB=Low"``."""
    return COMPOSITE_SEPARATOR.join(f"{name}={label}" for name, label in parts)


class Stratification(Mapping):
    """Immutable ``Mapping[subject_id, label]`` with provenance."""

    __slots__ = ('_labels', '_covariate', '_levels', '_possible_levels',
                 '_threshold', '_components')

    def __init__(
        self,
        labels: Mapping[Hashable, str],
        *,
        covariate: str,
        levels: Sequence[str] | None = None,
        threshold: float | None = None,
        components: tuple[str, ...] = (),
    ) -> None:
        self._labels = MappingProxyType(dict(labels))
        observed = set(self._labels.values())
        if levels is None:
            possible = tuple(sorted(observed))
        else:
            possible = tuple(levels)
            stray = observed - set(possible)
            if stray:
                raise ValueError(
                    f"labels use levels {sorted(stray)} not listed in levels"
                )
        self._possible_levels = possible
        self._levels = tuple(lv for lv in possible if lv in observed)
        self._covariate = covariate
        self._threshold = threshold
        self._components = components or (covariate,)

    @property
    def covariate(self) -> str:
        """Covariate name (or composite name for cross products)."""
        return self._covariate

    @property
    def levels(self) -> tuple[str, ...]:
        """Observed levels, in canonical order."""
        return self._levels

    @property
    def possible_levels(self) -> tuple[str, ...]:
        """Every level the rule could produce, observed or not."""
        return self._possible_levels

    @property
    def threshold(self) -> float | None:
        """Cut point for threshold splits, else None."""
        return self._threshold

    @property
    def components(self) -> tuple[str, ...]:
        """Covariates the labels were derived from."""
        return self._components

    @property
    def is_complete(self) -> bool:
        """True when every possible level is observed."""
        return len(self._levels) == len(self._possible_levels)

    def groups(self) -> dict[str, tuple]:
        """Level -> subject ids, in level order."""
        out: dict[str, list] = {lv: [] for lv in self._levels}
        for sid, lv in self._labels.items():
            out[lv].append(sid)
        return {lv: tuple(ids) for lv, ids in out.items()}

    def counts(self) -> dict[str, int]:
        return {lv: len(ids) for lv, ids in self.groups().items()}

    def __getitem__(self, sid: Hashable) -> str:
        return self._labels[sid]

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self._labels)

    def __len__(self) -> int:
        return len(self._labels)

    def __repr__(self) -> str:
        return (
            f"Stratification(covariate={self._covariate!r}, "
            f"counts={self.counts()})"
        )
