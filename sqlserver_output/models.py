"""Value objects describing tables, columns and merge settings.

All models are immutable and built per call from caller-supplied state.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List, Optional, Sequence, Tuple


class ColumnDeclareType(Enum):
    """How a column type is rendered in a CREATE TABLE declaration."""

    SIMPLE = "simple"
    SIZE = "size"
    SIZE_AND_SCALE = "size_and_scale"
    SIZE_AND_OPTIONAL_SCALE = "size_and_optional_scale"


@dataclass(frozen=True)
class ColumnSpec:
    """
    A target column as described by the caller's schema.

    Attributes:
        name: Column name
        simple_type_name: Logical type name (e.g. 'VARCHAR', 'BOOLEAN', 'TIMESTAMP')
        size: Length/precision parameter, meaningful for sized types only
        scale: Scale parameter for DECIMAL/NUMERIC, -1 when absent
        declared_type: Verbatim type text that overrides type mapping
    """

    name: str
    simple_type_name: str
    size: int = 0
    scale: int = -1
    declared_type: Optional[str] = None


@dataclass(frozen=True)
class SchemaSpec:
    """Ordered column list. Column order drives every generated column list."""

    columns: Tuple[ColumnSpec, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "columns", tuple(self.columns))

    @classmethod
    def of(cls, *columns: ColumnSpec) -> "SchemaSpec":
        return cls(columns=columns)

    @property
    def count(self) -> int:
        return len(self.columns)

    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]

    def column_name(self, index: int) -> str:
        return self.columns[index].name

    def __iter__(self) -> Iterator[ColumnSpec]:
        return iter(self.columns)

    def __len__(self) -> int:
        return len(self.columns)


@dataclass(frozen=True)
class TableRef:
    """
    A table name with optional schema and database qualifiers.

    Two refs naming the same table compare equal and quote to the same text.
    """

    table_name: str
    schema_name: Optional[str] = None
    database_name: Optional[str] = None

    def __post_init__(self):
        # An empty qualifier means no qualifier
        if not self.schema_name:
            object.__setattr__(self, "schema_name", None)
        if not self.database_name:
            object.__setattr__(self, "database_name", None)

    @classmethod
    def parse(cls, name: str) -> "TableRef":
        """
        Split dotted text into a table reference.

        Args:
            name: 'table', 'schema.table' or 'database.schema.table'

        Returns:
            TableRef with the qualifiers that were present
        """
        parts = name.split(".")
        if len(parts) == 1:
            return cls(table_name=parts[0])
        if len(parts) == 2:
            return cls(table_name=parts[1], schema_name=parts[0])
        database, schema = parts[0], parts[1]
        return cls(table_name=".".join(parts[2:]), schema_name=schema, database_name=database)

    def with_table_name(self, table_name: str) -> "TableRef":
        """Return a ref to another table in the same schema."""
        return TableRef(
            table_name=table_name,
            schema_name=self.schema_name,
            database_name=self.database_name,
        )

    def __str__(self) -> str:
        return ".".join(p for p in (self.database_name, self.schema_name, self.table_name) if p)


@dataclass(frozen=True)
class MergeSpec:
    """
    Merge keys plus an optional custom update rule.

    Attributes:
        merge_keys: Columns used to match staging rows to target rows
        merge_rule: 'column = expression' fragments used instead of the default
            'column = S.column' for every schema column
    """

    merge_keys: Tuple[str, ...]
    merge_rule: Optional[Tuple[str, ...]] = None

    def __post_init__(self):
        object.__setattr__(self, "merge_keys", tuple(self.merge_keys))
        if self.merge_rule is not None:
            object.__setattr__(self, "merge_rule", tuple(self.merge_rule))

    @classmethod
    def of(cls, merge_keys: Sequence[str], merge_rule: Optional[Sequence[str]] = None) -> "MergeSpec":
        return cls(merge_keys=tuple(merge_keys), merge_rule=merge_rule)


@dataclass
class CollectResult:
    """Row counts reported by the collect statements."""

    inserted: int = 0
    updated: int = 0
    merged: int = 0

    @property
    def total_affected(self) -> int:
        return self.inserted + self.updated + self.merged
