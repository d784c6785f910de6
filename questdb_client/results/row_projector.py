import dataclasses
import datetime
import logging
import types
import typing
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence, Type, TypeVar, Union, runtime_checkable

from questdb_client.coding.dynamic_value import MISSING, DynamicValue
from questdb_client.errors import RecordMaterializeError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Row = Dict[str, Any]


@dataclass
class ProjectionReport:
    """Counts of rows seen and rows dropped by the last projection."""
    total: int = 0
    shape_mismatches: int = 0
    materialize_failures: int = 0

    @property
    def dropped(self) -> int:
        return self.shape_mismatches + self.materialize_failures

    @property
    def kept(self) -> int:
        return self.total - self.dropped


def _parse_datetime(value: Any, column: Optional[str]) -> datetime.datetime:
    if isinstance(value, datetime.datetime):
        return value
    if isinstance(value, str):
        text = value[:-1] + "+00:00" if value.endswith("Z") else value
        try:
            return datetime.datetime.fromisoformat(text)
        except ValueError as e:
            raise RecordMaterializeError(column, f"invalid timestamp {value!r}: {e}") from e
    if isinstance(value, int) and not isinstance(value, bool):
        # Numeric timestamps are epoch microseconds.
        epoch = datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc)
        return epoch + datetime.timedelta(microseconds=value)
    raise RecordMaterializeError(column, f"cannot read {value!r} as a timestamp")


def coerce(value: Any, target: Any, column: Optional[str] = None) -> Any:
    """Convert a native row value to the annotated field type.

    Only lossless conversions are made; anything else raises
    RecordMaterializeError.
    """
    if isinstance(value, DynamicValue):
        value = value.to_native()

    if target is Any or target is None:
        return value

    origin = typing.get_origin(target)
    if origin is Union or origin is types.UnionType:
        arguments = typing.get_args(target)
        if value is None:
            if type(None) in arguments:
                return None
            raise RecordMaterializeError(column, "null value for a non-optional field")
        errors = []
        for argument in arguments:
            if argument is type(None):
                continue
            try:
                return coerce(value, argument, column)
            except RecordMaterializeError as e:
                errors.append(e.reason)
        raise RecordMaterializeError(column, "; ".join(errors))

    if value is None:
        raise RecordMaterializeError(column, "null value for a non-optional field")

    if origin is not None:
        # Parameterised containers (List[int], Dict[str, Any]) are checked by origin only.
        if isinstance(value, origin):
            return value
        raise RecordMaterializeError(column, f"expected {origin.__name__}, got {type(value).__name__}")

    if target is bool:
        if isinstance(value, bool):
            return value
        raise RecordMaterializeError(column, f"expected bool, got {type(value).__name__}")
    if target is int:
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        raise RecordMaterializeError(column, f"expected int, got {value!r}")
    if target is float:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
        raise RecordMaterializeError(column, f"expected float, got {value!r}")
    if target is str:
        if isinstance(value, str):
            return value
        raise RecordMaterializeError(column, f"expected str, got {type(value).__name__}")
    if target is datetime.datetime:
        return _parse_datetime(value, column)
    if target is datetime.date:
        if isinstance(value, datetime.date):
            return value
        return _parse_datetime(value, column).date()
    if isinstance(target, type):
        if isinstance(value, target):
            return value
        raise RecordMaterializeError(column, f"expected {target.__name__}, got {type(value).__name__}")
    return value


class RowAccessor:
    """Read-only access to one row, keyed by column name."""

    def __init__(self, row: Row):
        self._row = row

    def __contains__(self, name: str) -> bool:
        return name in self._row

    def keys(self):
        return self._row.keys()

    def get(self, name: str, kind: Any = None, default: Any = MISSING) -> Any:
        if name not in self._row:
            if default is MISSING:
                raise RecordMaterializeError(name, "missing column")
            return default
        value = self._row[name]
        if kind is None:
            return value
        return coerce(value, kind, name)

    def as_dict(self) -> Row:
        return dict(self._row)


@runtime_checkable
class RowDecodable(Protocol):
    """Record types that build themselves from a row."""

    @classmethod
    def from_row(cls, row: RowAccessor) -> Any:
        ...


def _check_target(target: Type[Any]) -> None:
    if target is dict or dataclasses.is_dataclass(target) or isinstance(target, RowDecodable):
        return
    raise TypeError(
        f"{getattr(target, '__name__', target)!r} cannot be built from a row: "
        f"define a from_row classmethod or make it a dataclass"
    )


def materialize(row: Row, target: Type[T]) -> T:
    """Build a ``target`` instance from a name to value mapping.

    Any exception raised while building the record, including ones from a
    ``from_row`` or ``__post_init__`` hook, surfaces as RecordMaterializeError.
    """
    _check_target(target)
    try:
        return _build(row, target)
    except RecordMaterializeError:
        raise
    except Exception as e:
        raise RecordMaterializeError(None, f"{type(e).__name__}: {e}") from e


def _build(row: Row, target: Type[T]) -> T:
    if isinstance(target, RowDecodable):
        return target.from_row(RowAccessor(row))
    if target is dict:
        return dict(row)

    try:
        hints = typing.get_type_hints(target)
    except (NameError, TypeError):
        hints = {}
    kwargs = {}
    for f in dataclasses.fields(target):
        if not f.init:
            continue
        if f.name in row:
            kwargs[f.name] = coerce(row[f.name], hints.get(f.name, Any), f.name)
        elif f.default is dataclasses.MISSING and f.default_factory is dataclasses.MISSING:
            raise RecordMaterializeError(f.name, "missing column")
    return target(**kwargs)


class RowProjector:
    """Pairs column names with dataset rows and turns the rows into records.

    Rows whose length differs from the column count, and rows that cannot be
    built into the requested type, are left out of the result. The counts of
    such rows are kept in ``last_report``.
    """

    def __init__(self, columns: Sequence[Any]):
        self.column_names: List[str] = [
            column if isinstance(column, str) else column.name for column in columns
        ]
        self.last_report = ProjectionReport()

    def project(self, dataset: Sequence[Sequence[Any]]) -> List[Row]:
        """Return one name to native value mapping per well-shaped row."""
        report = ProjectionReport(total=len(dataset))
        rows = list(self._rows(dataset, report))
        self._finish(report)
        return rows

    def materialize(self, dataset: Sequence[Sequence[Any]], target: Type[T]) -> List[T]:
        _check_target(target)
        report = ProjectionReport(total=len(dataset))
        records: List[T] = []
        for index, row in self._rows(dataset, report, with_index=True):
            try:
                records.append(materialize(row, target))
            except RecordMaterializeError as e:
                report.materialize_failures += 1
                logger.debug(f"Dropping row {index}: {e}")
        self._finish(report)
        return records

    def _rows(self, dataset, report: ProjectionReport, with_index: bool = False):
        width = len(self.column_names)
        for index, values in enumerate(dataset):
            if len(values) != width:
                report.shape_mismatches += 1
                logger.debug(f"Dropping row {index}: {len(values)} values for {width} columns")
                continue
            row = {
                name: value.to_native() if isinstance(value, DynamicValue) else value
                for name, value in zip(self.column_names, values)
            }
            yield (index, row) if with_index else row

    def _finish(self, report: ProjectionReport) -> None:
        self.last_report = report
        if report.dropped:
            logger.warning(
                f"Dropped {report.dropped} of {report.total} rows "
                f"({report.shape_mismatches} shape mismatches, "
                f"{report.materialize_failures} materialization failures)"
            )
