from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar

from questdb_client.coding.dynamic_value import DynamicValue, decode_dynamic
from questdb_client.errors import DecodingFailure
from questdb_client.results.row_projector import ProjectionReport, RowProjector

T = TypeVar("T")


@dataclass(frozen=True)
class Column:
    name: str
    type: str               # Declared column type; carried, not used for conversion


@dataclass
class Timings:
    """Server-side timings in nanoseconds."""
    compiler: int
    count: int
    execute: int


def _require(payload: Mapping[str, Any], key: str, kind: type, path: List[Any]) -> Any:
    if key not in payload:
        raise DecodingFailure(path + [key], "missing key")
    value = payload[key]
    if not isinstance(value, kind) or isinstance(value, bool) and kind is not bool:
        raise DecodingFailure(path + [key], f"expected {kind.__name__}, got {type(value).__name__}")
    return value


@dataclass
class QueryResponse:
    """
    Result set of an /exec call: column descriptors plus rows of dynamic values.

    ``rows`` pairs each dataset row with the column names; ``decode`` turns
    those rows into caller-chosen record types. Malformed rows are skipped
    rather than reported; see ``last_report`` for how many.
    """
    query: str
    columns: List[Column]
    dataset: List[List[DynamicValue]]
    count: Optional[int] = None
    timings: Optional[Timings] = None
    last_report: ProjectionReport = field(default_factory=ProjectionReport, compare=False, repr=False)

    @classmethod
    def from_json(cls, payload: Any) -> "QueryResponse":
        if not isinstance(payload, Mapping):
            raise DecodingFailure([], f"expected a JSON object, got {type(payload).__name__}")

        query = payload.get("query", "")
        if not isinstance(query, str):
            raise DecodingFailure(["query"], "expected str")

        columns = []
        for index, column in enumerate(_require(payload, "columns", list, [])):
            path = ["columns", index]
            if not isinstance(column, Mapping):
                raise DecodingFailure(path, "expected a column object")
            columns.append(Column(
                name=_require(column, "name", str, path),
                type=_require(column, "type", str, path),
            ))

        dataset = []
        for index, row in enumerate(_require(payload, "dataset", list, [])):
            if not isinstance(row, list):
                raise DecodingFailure(["dataset", index], "expected a row array")
            dataset.append([
                decode_dynamic(value, ["dataset", index, position]) for position, value in enumerate(row)
            ])

        count = payload.get("count")
        if count is not None and (not isinstance(count, int) or isinstance(count, bool)):
            raise DecodingFailure(["count"], "expected int")

        timings = None
        if payload.get("timings") is not None:
            raw = payload["timings"]
            if not isinstance(raw, Mapping):
                raise DecodingFailure(["timings"], "expected an object")
            timings = Timings(
                compiler=_require(raw, "compiler", int, ["timings"]),
                count=_require(raw, "count", int, ["timings"]),
                execute=_require(raw, "execute", int, ["timings"]),
            )

        return cls(query=query, columns=columns, dataset=dataset, count=count, timings=timings)

    @property
    def column_names(self) -> List[str]:
        return [column.name for column in self.columns]

    @property
    def rows(self) -> List[Dict[str, Any]]:
        projector = RowProjector(self.columns)
        rows = projector.project(self.dataset)
        self.last_report = projector.last_report
        return rows

    def decode(self, target: Type[T]) -> List[T]:
        projector = RowProjector(self.columns)
        records = projector.materialize(self.dataset, target)
        self.last_report = projector.last_report
        return records


@dataclass
class QuestOperationResponse:
    """Acknowledgement returned for DDL statements."""
    ddl: str

    @classmethod
    def from_json(cls, payload: Any) -> "QuestOperationResponse":
        if not isinstance(payload, Mapping):
            raise DecodingFailure([], f"expected a JSON object, got {type(payload).__name__}")
        return cls(ddl=_require(payload, "ddl", str, []))
