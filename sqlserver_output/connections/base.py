"""
Generic Connector
=================

Dialect-neutral building blocks shared by every target: identifier quoting,
default column type rendering, CREATE/DROP TABLE text and statement execution.
Dialect writers wrap a GenericConnector and call through to it for anything
they do not special-case.
"""

from typing import Callable, Optional

from sqlserver_output.models import ColumnDeclareType, ColumnSpec, SchemaSpec, TableRef

STANDARD_SIZE_TYPE_NAMES = frozenset(
    [
        "CHAR",
        "VARCHAR",
        "CHAR VARYING",
        "CHARACTER VARYING",
        "LONGVARCHAR",
        "NCHAR",
        "NVARCHAR",
        "NCHAR VARYING",
        "NATIONAL CHAR VARYING",
        "NATIONAL CHARACTER VARYING",
        "BINARY",
        "VARBINARY",
        "BINARY VARYING",
        "LONGVARBINARY",
        "BIT",
        "CLOB",
        "NCLOB",
        "BLOB",
    ]
)

STANDARD_SIZE_AND_SCALE_TYPE_NAMES = frozenset(["DECIMAL", "NUMERIC"])

DeclareTypeFn = Callable[[str, ColumnSpec], ColumnDeclareType]
ColumnTypeNameFn = Callable[[ColumnSpec], str]


class GenericConnector:
    """
    Dialect-neutral connector over a session.

    The session must provide `execute`, `fetch_one`, `commit`,
    `get_auto_commit` and `set_auto_commit` (see DbapiSession).
    """

    def __init__(self, session, identifier_quote: str = '"'):
        self.session = session
        self.identifier_quote = identifier_quote

    # ------------------------------------------------------------------
    # Quoting
    # ------------------------------------------------------------------

    def quote_identifier(self, identifier: str) -> str:
        return f"{self.identifier_quote}{identifier}{self.identifier_quote}"

    def quote_table(self, table: TableRef) -> str:
        """Quote each present part of a table reference and join with dots."""
        parts = []
        if table.database_name:
            parts.append(self.quote_identifier(table.database_name))
        if table.schema_name:
            parts.append(self.quote_identifier(table.schema_name))
        parts.append(self.quote_identifier(table.table_name))
        return ".".join(parts)

    # ------------------------------------------------------------------
    # Column types
    # ------------------------------------------------------------------

    def get_column_declare_type(self, type_name: str, column: ColumnSpec) -> ColumnDeclareType:
        if type_name in STANDARD_SIZE_TYPE_NAMES:
            return ColumnDeclareType.SIZE
        if type_name in STANDARD_SIZE_AND_SCALE_TYPE_NAMES and column.scale >= 0:
            return ColumnDeclareType.SIZE_AND_SCALE
        return ColumnDeclareType.SIMPLE

    def build_column_type_name(
        self, column: ColumnSpec, declare_type: Optional[DeclareTypeFn] = None
    ) -> str:
        """
        Render a column type from its logical type name and size parameters.

        Args:
            column: Column to render
            declare_type: Classifier deciding the declaration form. Dialects pass
                their own classifier; defaults to get_column_declare_type.

        Returns:
            Type text such as 'VARCHAR(64)', 'DECIMAL(10,2)' or 'INT'
        """
        declare_type = declare_type or self.get_column_declare_type
        type_name = column.simple_type_name
        kind = declare_type(type_name, column)

        if kind == ColumnDeclareType.SIZE:
            return f"{type_name}({column.size})"
        if kind == ColumnDeclareType.SIZE_AND_SCALE:
            if column.scale < 0:
                return f"{type_name}({column.size},0)"
            return f"{type_name}({column.size},{column.scale})"
        if kind == ColumnDeclareType.SIZE_AND_OPTIONAL_SCALE:
            if column.scale < 0:
                return f"{type_name}({column.size})"
            return f"{type_name}({column.size},{column.scale})"
        return type_name

    # ------------------------------------------------------------------
    # DDL text
    # ------------------------------------------------------------------

    def build_create_table_sql(
        self,
        table: TableRef,
        schema: SchemaSpec,
        column_type_name: Optional[ColumnTypeNameFn] = None,
        table_constraint: Optional[str] = None,
        table_option: Optional[str] = None,
    ) -> str:
        column_type_name = column_type_name or self.build_column_type_name

        column_defs = []
        for column in schema:
            type_text = column.declared_type or column_type_name(column)
            column_defs.append(f"{self.quote_identifier(column.name)} {type_text}")
        if table_constraint:
            column_defs.append(table_constraint)

        sql = f"CREATE TABLE {self.quote_table(table)} ({', '.join(column_defs)})"
        if table_option:
            sql += f" {table_option}"
        return sql

    def build_drop_table_sql(self, table: TableRef) -> str:
        return f"DROP TABLE {self.quote_table(table)}"

    def build_delete_all_sql(self, table: TableRef) -> str:
        return f"DELETE FROM {self.quote_table(table)}"

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def execute(self, sql: str) -> int:
        return self.session.execute(sql)

    def table_exists(self, table: TableRef) -> bool:
        """Look the table up in INFORMATION_SCHEMA.TABLES."""
        if table.schema_name:
            row = self.session.fetch_one(
                "SELECT 1 FROM INFORMATION_SCHEMA.TABLES WHERE TABLE_SCHEMA = ? AND TABLE_NAME = ?",
                [table.schema_name, table.table_name],
            )
        else:
            row = self.session.fetch_one(
                "SELECT 1 FROM INFORMATION_SCHEMA.TABLES "
                "WHERE TABLE_SCHEMA = SCHEMA_NAME() AND TABLE_NAME = ?",
                [table.table_name],
            )
        return row is not None

    def create_table(
        self,
        table: TableRef,
        schema: SchemaSpec,
        column_type_name: Optional[ColumnTypeNameFn] = None,
        table_constraint: Optional[str] = None,
        table_option: Optional[str] = None,
    ) -> None:
        self.execute(
            self.build_create_table_sql(
                table,
                schema,
                column_type_name=column_type_name,
                table_constraint=table_constraint,
                table_option=table_option,
            )
        )
        self.commit_if_necessary()

    def drop_table(self, table: TableRef) -> None:
        self.execute(self.build_drop_table_sql(table))

    def commit_if_necessary(self) -> None:
        if not self.session.get_auto_commit():
            self.session.commit()
