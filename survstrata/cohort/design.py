"""
SubjectCohort: immutable container for per-subject survival data.

Wraps subject ids, follow-up times, event indicators and named covariates.
Validates inputs and resolves covariate kinds once at construction time, so
all downstream code trusts clean data.

Subsetting never copies the raw columns: a cohort is a (store, index) pair
and every view shares the same read-only store.
"""

from __future__ import annotations

import enum
import numbers
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Hashable, Iterable, Iterator, Mapping, TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from survstrata.core.exceptions import ValidationError
from survstrata.core.logging import get_logger
from survstrata.core.validation import (
    check_1d,
    check_array,
    check_consistent_length,
    check_event_indicator,
    check_unique,
)

if TYPE_CHECKING:
    import pandas as pd

logger = get_logger(__name__)


class CovariateKind(enum.Enum):
    """Tag for a covariate column."""
    NUMERIC = "numeric"
    CATEGORICAL = "categorical"


@dataclass(frozen=True)
class CovariateColumn:
    """
    A resolved covariate column.

    Numeric columns are float64 with NaN for missing values. Categorical
    columns are object arrays of str with None for missing values.
    """

    name: str
    kind: CovariateKind
    values: NDArray

    @property
    def missing(self) -> NDArray:
        """Boolean mask of missing entries."""
        if self.kind is CovariateKind.NUMERIC:
            return np.isnan(self.values)
        return np.fromiter((v is None for v in self.values), dtype=bool,
                           count=len(self.values))

    @property
    def available(self) -> NDArray:
        """Non-missing values."""
        return self.values[~self.missing]

    def take(self, index: NDArray) -> CovariateColumn:
        values = self.values[index]
        values.setflags(write=False)
        return CovariateColumn(name=self.name, kind=self.kind, values=values)


@dataclass(frozen=True)
class SubjectRecord:
    """
    One subject.

    Parameters
    ----------
    id : hashable
        Unique, opaque identifier.
    time : float
        Time to event or censoring (positive, finite).
    event : bool
        True if the event was observed, False if censored at ``time``.
    covariates : Mapping[str, float | str | None]
        Covariate values; None (categorical) or NaN (numeric) when missing.
    """

    id: Hashable
    time: float
    event: bool
    covariates: Mapping[str, Any]


@dataclass(frozen=True)
class _CohortStore:
    ids: NDArray                          # object
    time: NDArray                         # float64
    event: NDArray                        # bool
    columns: Mapping[str, CovariateColumn]
    positions: Mapping[Hashable, int]     # id -> row


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    try:
        return bool(value != value)
    except (TypeError, ValueError):
        # pandas.NA and friends refuse truthiness
        return True


def _nan_for_missing(values: Any) -> Any:
    arr = np.asarray(values)
    if arr.dtype != object:
        return arr
    return np.array([np.nan if _is_missing(v) else v for v in arr.ravel()],
                    dtype=object)


def _is_real(value: Any) -> bool:
    return (isinstance(value, numbers.Real)
            and not isinstance(value, (bool, np.bool_)))


def _resolve_column(
    name: str,
    raw: Any,
    n: int,
    kind: CovariateKind | str | None,
) -> CovariateColumn:
    """Tag a raw covariate column as numeric or categorical."""
    if kind is not None:
        kind = CovariateKind(kind)

    arr = np.asarray(raw)
    if arr.ndim != 1 or len(arr) != n:
        raise ValidationError(
            f"covariate {name!r} must be 1D with {n} elements, "
            f"got shape {arr.shape}"
        )

    # Fast path: already a numeric array
    if (arr.dtype != object and np.issubdtype(arr.dtype, np.number)
            and kind in (None, CovariateKind.NUMERIC)):
        return CovariateColumn(name, CovariateKind.NUMERIC,
                               arr.astype(np.float64))

    values = arr.astype(object) if arr.dtype != object else arr
    missing = np.fromiter((_is_missing(v) for v in values), dtype=bool, count=n)
    present = values[~missing]

    if kind is None:
        kind = (CovariateKind.NUMERIC
                if all(_is_real(v) for v in present)
                else CovariateKind.CATEGORICAL)

    if kind is CovariateKind.NUMERIC:
        out = np.full(n, np.nan, dtype=np.float64)
        try:
            out[~missing] = np.asarray(present, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise ValidationError(
                f"covariate {name!r} declared numeric but holds "
                f"non-numeric values"
            ) from e
        return CovariateColumn(name, kind, out)

    out = np.empty(n, dtype=object)
    out[:] = None
    for i in np.flatnonzero(~missing):
        out[i] = str(values[i])
    return CovariateColumn(name, kind, out)


class SubjectCohort:
    """
    Immutable, ordered collection of subject records.

    Construct via the factory classmethods, not directly. Every subsetting
    method returns a new cohort view over the same underlying store.
    """

    __slots__ = ('_store', '_index')

    def __init__(self, _store: _CohortStore, _index: NDArray) -> None:
        index = np.asarray(_index, dtype=np.intp)
        index.setflags(write=False)
        self._store = _store
        self._index = index

    # === Factory methods ===

    @classmethod
    def from_arrays(
        cls,
        ids,
        time,
        event,
        covariates: Mapping[str, Any] | None = None,
        *,
        kinds: Mapping[str, CovariateKind | str] | None = None,
    ) -> SubjectCohort:
        """Create and validate a cohort from parallel arrays.

        Parameters
        ----------
        ids : array-like or None
            Subject identifiers. None numbers subjects 0..n-1.
        time : array-like
            Time to event or censoring.
        event : array-like
            Event indicator (1/True = event, 0/False = censored).
        covariates : Mapping[str, array-like] or None
            Named covariate columns, numeric or categorical.
        kinds : Mapping[str, CovariateKind | str] or None
            Explicit kind per covariate, overriding inference.

        Returns
        -------
        SubjectCohort

        Raises
        ------
        ValidationError
            If lengths differ, events are not 0/1, or ids repeat among
            eligible subjects.
        """
        time = check_array(_nan_for_missing(time), "time").ravel()
        event = check_array(_nan_for_missing(event), "event").ravel()
        check_1d(time, "time")
        n = len(time)

        id_list = list(range(n)) if ids is None else list(ids)
        id_arr = np.empty(len(id_list), dtype=object)
        for i, sid in enumerate(id_list):
            id_arr[i] = sid

        check_consistent_length(id_arr, time, event, names=("ids", "time", "event"))
        check_event_indicator(event)

        with np.errstate(invalid='ignore'):
            eligible = np.isfinite(time) & (time > 0) & ~np.isnan(event)
        n_dropped = int(n - np.sum(eligible))
        if n_dropped:
            logger.warning(
                "Excluded %d of %d records with missing, non-finite or "
                "non-positive time or missing event", n_dropped, n,
            )

        covariates = covariates or {}
        kinds = kinds or {}
        unknown = set(kinds) - set(covariates)
        if unknown:
            raise ValidationError(
                f"kinds given for unknown covariates: {sorted(unknown)}"
            )

        columns: dict[str, CovariateColumn] = {}
        for name, raw in covariates.items():
            col = _resolve_column(str(name), raw, n, kinds.get(name))
            columns[col.name] = col.take(eligible)

        id_arr = id_arr[eligible]
        check_unique(id_arr, "ids")

        time = time[eligible]
        event_b = event[eligible] == 1.0
        for arr in (id_arr, time, event_b):
            arr.setflags(write=False)

        store = _CohortStore(
            ids=id_arr,
            time=time,
            event=event_b,
            columns=MappingProxyType(columns),
            positions=MappingProxyType({sid: i for i, sid in enumerate(id_arr)}),
        )
        return cls(store, np.arange(len(id_arr)))

    @classmethod
    def from_records(
        cls,
        records: Iterable[SubjectRecord | Mapping[str, Any]],
        *,
        kinds: Mapping[str, CovariateKind | str] | None = None,
    ) -> SubjectCohort:
        """Create a cohort from SubjectRecord objects or equivalent dicts.

        A dict needs ``id``, ``time`` and ``event`` keys and may carry a
        ``covariates`` mapping. Covariates absent from a record are missing.
        """
        ids: list = []
        times: list = []
        events: list = []
        covs: list[Mapping[str, Any]] = []
        names: dict[str, None] = {}

        for rec in records:
            if isinstance(rec, SubjectRecord):
                sid, t, e, c = rec.id, rec.time, rec.event, rec.covariates
            else:
                try:
                    sid, t, e = rec["id"], rec["time"], rec["event"]
                except KeyError as exc:
                    raise ValidationError(
                        f"record is missing required key {exc.args[0]!r}"
                    ) from exc
                c = rec.get("covariates") or {}
            ids.append(sid)
            times.append(np.nan if t is None else t)
            events.append(np.nan if e is None else e)
            covs.append(c)
            for name in c:
                names.setdefault(name, None)

        columns = {
            name: [c.get(name) for c in covs] for name in names
        }
        return cls.from_arrays(
            ids,
            np.asarray(times, dtype=np.float64),
            np.asarray(events, dtype=np.float64),
            columns,
            kinds=kinds,
        )

    @classmethod
    def from_dataframe(
        cls,
        df: 'pd.DataFrame',
        *,
        time_col: str = "time",
        event_col: str = "event",
        id_col: str | None = None,
        covariates: Iterable[str] | None = None,
        kinds: Mapping[str, CovariateKind | str] | None = None,
    ) -> SubjectCohort:
        """Create a cohort from a pandas DataFrame.

        The index supplies subject ids unless ``id_col`` is given. All
        columns other than time/event/id are covariates unless
        ``covariates`` lists a subset.
        """
        import pandas as pd

        for col in (time_col, event_col) + ((id_col,) if id_col else ()):
            if col not in df.columns:
                raise ValidationError(
                    f"DataFrame has no column {col!r}. "
                    f"Available: {list(df.columns)}"
                )

        ids = df[id_col].tolist() if id_col else df.index.tolist()
        reserved = {time_col, event_col, id_col}
        if covariates is None:
            names = [c for c in df.columns if c not in reserved]
        else:
            names = list(covariates)
            missing = [c for c in names if c not in df.columns]
            if missing:
                raise ValidationError(f"DataFrame has no columns {missing}")

        time = pd.to_numeric(df[time_col], errors="coerce").to_numpy(dtype=np.float64)
        event = df[event_col].to_numpy(dtype=object)
        columns = {
            str(name): df[name].astype(object).where(df[name].notna(), None).to_numpy()
            for name in names
        }
        return cls.from_arrays(ids, time, event, columns, kinds=kinds)

    # === Properties ===

    @property
    def n(self) -> int:
        """Number of subjects in this view."""
        return len(self._index)

    def __len__(self) -> int:
        return self.n

    @property
    def ids(self) -> NDArray:
        return self._view(self._store.ids)

    @property
    def time(self) -> NDArray:
        return self._view(self._store.time)

    @property
    def event(self) -> NDArray:
        """Boolean event indicator."""
        return self._view(self._store.event)

    @property
    def n_events(self) -> int:
        return int(np.sum(self.event))

    @property
    def covariate_names(self) -> tuple[str, ...]:
        return tuple(self._store.columns)

    def has_covariate(self, name: str) -> bool:
        return name in self._store.columns

    def column(self, name: str) -> CovariateColumn:
        """Resolved covariate column restricted to this view."""
        try:
            col = self._store.columns[name]
        except KeyError:
            raise KeyError(
                f"Cohort has no covariate {name!r}. "
                f"Available: {list(self._store.columns)}"
            ) from None
        return col.take(self._index)

    def covariate(self, name: str) -> NDArray:
        return self.column(name).values

    def kind(self, name: str) -> CovariateKind:
        return self.column(name).kind

    # === Views ===

    def subset(self, mask) -> SubjectCohort:
        """View restricted by a boolean mask or integer positions."""
        sel = np.asarray(mask)
        if sel.dtype == bool:
            if len(sel) != self.n:
                raise ValidationError(
                    f"mask must have {self.n} elements, got {len(sel)}"
                )
            return SubjectCohort(self._store, self._index[sel])
        return SubjectCohort(self._store, self._index[sel.astype(np.intp)])

    def select(self, ids: Iterable[Hashable]) -> SubjectCohort:
        """View restricted to the given ids, preserving cohort order.

        Ids not present in this view are ignored.
        """
        wanted = set(ids)
        mask = np.fromiter((sid in wanted for sid in self.ids), dtype=bool,
                           count=self.n)
        return self.subset(mask)

    def where(self, name: str, levels) -> SubjectCohort:
        """View of subjects whose covariate value is in ``levels``."""
        col = self.column(name)
        if isinstance(levels, (str, numbers.Real)):
            levels = [levels]
        if col.kind is CovariateKind.NUMERIC:
            mask = np.isin(col.values, np.asarray(list(levels), dtype=np.float64))
        else:
            wanted = {str(v) for v in levels}
            mask = np.fromiter((v in wanted for v in col.values), dtype=bool,
                               count=self.n)
        return self.subset(mask)

    def filter(self, predicate: Callable[[SubjectRecord], bool]) -> SubjectCohort:
        """View of subjects for which ``predicate(record)`` is true."""
        mask = np.fromiter((bool(predicate(r)) for r in self.records()),
                           dtype=bool, count=self.n)
        return self.subset(mask)

    # === Records ===

    def __getitem__(self, position: int) -> SubjectRecord:
        row = int(self._index[position])
        st = self._store
        return SubjectRecord(
            id=st.ids[row],
            time=float(st.time[row]),
            event=bool(st.event[row]),
            covariates=MappingProxyType({
                name: (float(col.values[row])
                       if col.kind is CovariateKind.NUMERIC
                       else col.values[row])
                for name, col in st.columns.items()
            }),
        )

    def records(self) -> Iterator[SubjectRecord]:
        for pos in range(self.n):
            yield self[pos]

    def __iter__(self) -> Iterator[SubjectRecord]:
        return self.records()

    def __contains__(self, sid: Hashable) -> bool:
        row = self._store.positions.get(sid)
        if row is None:
            return False
        return bool(np.any(self._index == row))

    def __repr__(self) -> str:
        return (
            f"SubjectCohort(n={self.n}, events={self.n_events}, "
            f"covariates={list(self.covariate_names)})"
        )

    def _view(self, base: NDArray) -> NDArray:
        out = base[self._index]
        out.setflags(write=False)
        return out
