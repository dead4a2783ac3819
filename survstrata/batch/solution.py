"""
Batch result containers.

A batch run produces one UnitResult per analysed unit of work (a candidate
covariate, or a cohort subset) and one SkipRecord per unit that could not be
analysed. BatchSolution wraps both in the usual Result envelope and flattens
them into a rectangular table on request.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Mapping

import numpy as np

from survstrata.batch._p_adjust import p_adjust
from survstrata.batch.pairwise import ComparisonResult
from survstrata.core.result import Result
from survstrata.stratify._labels import Stratification
from survstrata.survival.solution import KMSolution

if TYPE_CHECKING:
    import pandas as pd

RECORD_COLUMNS = (
    "key", "grouping",
    "group_a", "group_b", "n_a", "n_b", "events_a", "events_b",
    "median_a", "median_b", "logrank_statistic", "logrank_p",
    "hazard_ratio", "hr_ci_lower", "hr_ci_upper", "hr_p",
    "reliable", "low_confidence", "notes",
)


@dataclass(frozen=True)
class SkipRecord:
    """A unit of work that was not analysed.

    ``reason`` is the name of the error class that stopped it.
    """

    key: str
    reason: str
    message: str

    @classmethod
    def from_error(cls, key: str, error: Exception) -> SkipRecord:
        return cls(key=key, reason=type(error).__name__, message=str(error))


@dataclass(frozen=True)
class UnitResult:
    """Everything computed for one unit of work."""

    key: str
    stratification: Stratification
    curves: Mapping[str, KMSolution]
    comparisons: tuple[ComparisonResult, ...]

    @property
    def levels(self) -> tuple[str, ...]:
        return self.stratification.levels


@dataclass(frozen=True)
class BatchParams:
    units: tuple[UnitResult, ...]
    skipped: tuple[SkipRecord, ...]


class BatchSolution:
    """Outcome of a batch run: analysed units plus skip records."""

    __slots__ = ('_result',)

    def __init__(self, _result: Result[BatchParams]) -> None:
        self._result = _result

    @property
    def units(self) -> dict[str, UnitResult]:
        """Analysed units keyed by unit key, in submission order."""
        return {u.key: u for u in self._result.params.units}

    @property
    def results(self) -> dict[str, tuple[ComparisonResult, ...]]:
        """Comparison rows keyed by unit key."""
        return {u.key: u.comparisons for u in self._result.params.units}

    @property
    def skipped(self) -> tuple[SkipRecord, ...]:
        return self._result.params.skipped

    @property
    def skip_reasons(self) -> dict[str, str]:
        return {s.key: s.reason for s in self.skipped}

    @property
    def info(self) -> dict[str, Any]:
        return self._result.info

    @property
    def timing(self):
        return self._result.timing

    @property
    def backend_name(self) -> str:
        return self._result.backend_name

    def __len__(self) -> int:
        return len(self._result.params.units)

    def __getitem__(self, key: str) -> tuple[ComparisonResult, ...]:
        return self.results[key]

    def __contains__(self, key: object) -> bool:
        return any(u.key == key for u in self._result.params.units)

    def to_records(self, adjust: str | None = None) -> list[dict[str, Any]]:
        """Flatten to one dict per comparison row.

        Parameters
        ----------
        adjust : str or None
            p_adjust method applied across the whole table. Adds
            ``logrank_p_adj`` and ``hr_p_adj`` columns.
        """
        records = []
        for unit in self._result.params.units:
            for row in unit.comparisons:
                rec = {"key": unit.key, "grouping": unit.stratification.covariate}
                rec.update(row.as_dict())
                records.append(rec)

        if adjust is not None:
            lr_adj = p_adjust([r["logrank_p"] for r in records], method=adjust)
            hr_adj = p_adjust([r["hr_p"] for r in records], method=adjust)
            for rec, a, b in zip(records, lr_adj, hr_adj):
                rec["logrank_p_adj"] = float(a)
                rec["hr_p_adj"] = float(b)
        return records

    def to_dataframe(self, adjust: str | None = None) -> 'pd.DataFrame':
        """Comparison table as a pandas DataFrame."""
        import pandas as pd

        columns = list(RECORD_COLUMNS)
        if adjust is not None:
            columns += ["logrank_p_adj", "hr_p_adj"]
        return pd.DataFrame.from_records(self.to_records(adjust), columns=columns)

    def skipped_dataframe(self) -> 'pd.DataFrame':
        import pandas as pd

        return pd.DataFrame(
            [(s.key, s.reason, s.message) for s in self.skipped],
            columns=["key", "reason", "message"],
        )

    def summary(self) -> str:
        """Short text report of the batch."""
        lines = []
        lines.append(f"Call: {self.info.get('method', 'batch')}()")
        lines.append("")
        n_rows = sum(len(u.comparisons) for u in self._result.params.units)
        lines.append(
            f"  units analysed= {len(self)}, skipped= {len(self.skipped)}, "
            f"comparison rows= {n_rows}"
        )
        p = np.array([r.logrank_p for u in self._result.params.units
                      for r in u.comparisons], dtype=np.float64)
        if len(p):
            lines.append(
                f"  log-rank p < 0.05: {int(np.sum(p < 0.05))} of "
                f"{int(np.sum(~np.isnan(p)))} computed"
            )
        if self.skipped:
            lines.append("")
            lines.append("  Skipped:")
            for s in self.skipped:
                lines.append(f"    {s.key}: {s.reason}: {s.message}")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"BatchSolution(units={len(self)}, skipped={len(self.skipped)})"
        )
