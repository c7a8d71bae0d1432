"""sqlserver_output - SQL Server and Azure Synapse SQL for staging-table bulk loads."""

__version__ = "0.3.0"

from sqlserver_output.config import (
    MergeStrategy,
    OutputConfig,
    TargetVariant,
    load_output_config,
)
from sqlserver_output.models import ColumnSpec, MergeSpec, SchemaSpec, TableRef
from sqlserver_output.writers import SqlServerWriter

__all__ = [
    "ColumnSpec",
    "MergeSpec",
    "MergeStrategy",
    "OutputConfig",
    "SchemaSpec",
    "SqlServerWriter",
    "TableRef",
    "TargetVariant",
    "load_output_config",
    "__version__",
]
