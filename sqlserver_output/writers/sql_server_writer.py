"""SQL Server dialect writer for staging-table loads.

Builds the SQL Server / Azure Synapse Analytics specific SQL used to fold staging
tables into a target table (MERGE, UPDATE ... JOIN, INSERT ... WHERE NOT EXISTS),
to swap tables by renaming, and to run DDL outside user transactions where the
product requires it. Generic parts (quoting, default types, execution) are
delegated to a GenericConnector.
"""

from contextlib import contextmanager
from typing import Any, Callable, Iterator, List, Optional, Sequence

from sqlserver_output.config import MergeStrategy, OutputConfig, TargetVariant
from sqlserver_output.connections.base import GenericConnector
from sqlserver_output.connections.sql_server import SqlServerConnection
from sqlserver_output.models import (
    CollectResult,
    ColumnDeclareType,
    ColumnSpec,
    MergeSpec,
    SchemaSpec,
    TableRef,
)
from sqlserver_output.utils.logging import logger

# Largest sized declarations; anything above needs (max)
MAX_NVARCHAR_SIZE = 4000
MAX_VARCHAR_SIZE = 8000

# Synapse has no NVARCHAR(max) for CLOB columns
SYNAPSE_CLOB_TYPE = "NVARCHAR(4000)"

# Types SQL Server rejects a size on
SIMPLE_TYPE_NAMES = ("BIT", "FLOAT")


class SqlServerWriter:
    """
    SQL Server dialect on top of a generic connector.

    Supports:
    - Column type mapping for SQL Server and Azure Synapse Analytics
    - Collect update / insert / merge of staging tables into a target
    - Table rename (sp_rename or RENAME OBJECT)
    - DDL forced into auto-commit on Azure Synapse Analytics
    - Config-driven loads (`from_config`, `load`)
    """

    def __init__(
        self,
        connector: GenericConnector,
        product: TargetVariant = TargetVariant.SQL_SERVER,
    ):
        """
        Args:
            connector: Generic connector providing quoting, default types and execution
            product: Target product; fixed for the writer's lifetime
        """
        self.connector = connector
        self.product = TargetVariant(product)

    @classmethod
    def from_connection(cls, connection: Any) -> "SqlServerWriter":
        """Open a session on a SqlServerConnection and build a writer over it."""
        session = connection.open_session()
        connector = GenericConnector(session, identifier_quote=connection.identifier_quote)
        return cls(connector, product=connection.product)

    @classmethod
    def from_config(cls, config: OutputConfig) -> "SqlServerWriter":
        """Connect with the config's connection settings and build a writer."""
        connection = SqlServerConnection.from_config(config.connection)
        connection.validate()
        return cls.from_connection(connection)

    @property
    def session(self):
        return self.connector.session

    @property
    def is_synapse(self) -> bool:
        return self.product == TargetVariant.AZURE_SYNAPSE_ANALYTICS

    def close(self) -> None:
        self.session.close()

    # =========================================================================
    # Quoting
    # =========================================================================

    def quote_identifier(self, identifier: str) -> str:
        return self.connector.quote_identifier(identifier)

    def quote_table(self, table: TableRef) -> str:
        return self.connector.quote_table(table)

    # =========================================================================
    # Column types
    # =========================================================================

    def build_column_type_name(self, column: ColumnSpec) -> str:
        """
        Map a logical column type to a SQL Server column type.

        Args:
            column: Column with logical type name and size

        Returns:
            Physical type text (e.g. 'BIT', 'DATETIME2', 'VARCHAR(max)')
        """
        type_name = column.simple_type_name

        if type_name == "BOOLEAN":
            return "BIT"
        if type_name == "CLOB":
            if self.is_synapse:
                return SYNAPSE_CLOB_TYPE
            return "NVARCHAR(max)"
        if type_name == "TIMESTAMP":
            return "DATETIME2"
        # An oversized NVARCHAR is mapped by the oversized VARCHAR rule
        if type_name == "NVARCHAR" and column.size > MAX_NVARCHAR_SIZE:
            return "VARCHAR(max)"
        if type_name == "VARCHAR" and column.size > MAX_VARCHAR_SIZE:
            return "VARCHAR(max)"

        return self.connector.build_column_type_name(
            column, declare_type=self.get_column_declare_type
        )

    def get_column_declare_type(self, type_name: str, column: ColumnSpec) -> ColumnDeclareType:
        if type_name in SIMPLE_TYPE_NAMES:
            return ColumnDeclareType.SIMPLE
        return self.connector.get_column_declare_type(type_name, column)

    def supports_table_if_exists_clause(self) -> bool:
        return False

    # =========================================================================
    # Rename
    # =========================================================================

    def build_rename_table_sql(self, from_table: TableRef, to_table: TableRef) -> str:
        """
        Build SQL renaming from_table to to_table's table name.

        sp_rename cannot move a table to another schema, so only the table name
        of to_table is used. Synapse dedicated pools only allow sp_rename on
        columns and use RENAME OBJECT instead.
        """
        if self.is_synapse:
            return self._build_rename_table_sql_for_synapse(from_table, to_table)

        if not from_table.schema_name:
            source = self.quote_identifier(from_table.table_name)
        else:
            source = self.quote_identifier(f"{from_table.schema_name}.{from_table.table_name}")
        return f"EXEC sp_rename {source}, {self.quote_identifier(to_table.table_name)}, 'OBJECT'"

    def _build_rename_table_sql_for_synapse(self, from_table: TableRef, to_table: TableRef) -> str:
        return (
            f"RENAME OBJECT {self.quote_table(from_table)} "
            f"TO {self.quote_identifier(to_table.table_name)}"
        )

    # =========================================================================
    # Collect SQL
    # =========================================================================

    def build_columns(self, schema: SchemaSpec, prefix: str = "") -> str:
        return ", ".join(f"{prefix}{self.quote_identifier(name)}" for name in schema.column_names)

    def _build_union_select(self, from_tables: Sequence[TableRef], schema: SchemaSpec) -> str:
        columns = self.build_columns(schema)
        return " UNION ALL ".join(
            f"SELECT {columns} FROM {self.quote_table(table)}" for table in from_tables
        )

    def _build_key_condition(self, merge_spec: MergeSpec) -> str:
        conditions = []
        for key in merge_spec.merge_keys:
            quoted = self.quote_identifier(key)
            conditions.append(f"T.{quoted} = S.{quoted}")
        return " AND ".join(conditions)

    def _build_update_rule(self, schema: SchemaSpec, merge_spec: MergeSpec) -> str:
        if merge_spec.merge_rule is not None:
            return ", ".join(merge_spec.merge_rule)
        assignments = []
        for name in schema.column_names:
            quoted = self.quote_identifier(name)
            assignments.append(f"{quoted} = S.{quoted}")
        return ", ".join(assignments)

    def build_collect_update_sql(
        self,
        from_tables: Sequence[TableRef],
        schema: SchemaSpec,
        to_table: TableRef,
        merge_spec: MergeSpec,
    ) -> str:
        """Build UPDATE ... FROM target JOIN (staging union) for rows with matching keys."""
        return (
            f"UPDATE T SET {self._build_update_rule(schema, merge_spec)}"
            f" FROM {self.quote_table(to_table)} AS T"
            f" JOIN ({self._build_union_select(from_tables, schema)}) AS S"
            f" ON {self._build_key_condition(merge_spec)}"
        )

    def build_collect_insert_sql(
        self,
        from_tables: Sequence[TableRef],
        schema: SchemaSpec,
        to_table: TableRef,
        merge_spec: MergeSpec,
    ) -> str:
        """Build INSERT of staging rows whose keys are not in the target yet."""
        target = self.quote_table(to_table)
        return (
            f"INSERT INTO {target} ({self.build_columns(schema)})"
            f" SELECT * FROM ({self._build_union_select(from_tables, schema)}) AS S"
            f" WHERE NOT EXISTS (SELECT 1 FROM {target} AS T"
            f" WHERE {self._build_key_condition(merge_spec)})"
        )

    def build_collect_merge_sql(
        self,
        from_tables: Sequence[TableRef],
        schema: SchemaSpec,
        to_table: TableRef,
        merge_spec: MergeSpec,
    ) -> str:
        """
        Build a single T-SQL MERGE of the staging union into the target.

        Args:
            from_tables: Staging tables, combined with UNION ALL in the given order
            schema: Column order shared by every column list
            to_table: Target table
            merge_spec: Merge keys and optional custom update rule

        Returns:
            MERGE statement terminated with ';'
        """
        return (
            f"MERGE INTO {self.quote_table(to_table)} AS T"
            f" USING ({self._build_union_select(from_tables, schema)}) AS S"
            f" ON ({self._build_key_condition(merge_spec)})"
            f" WHEN MATCHED THEN UPDATE SET {self._build_update_rule(schema, merge_spec)}"
            f" WHEN NOT MATCHED THEN INSERT ({self.build_columns(schema)})"
            f" VALUES ({self.build_columns(schema, 'S.')});"
        )

    def build_append_sql(
        self, from_tables: Sequence[TableRef], schema: SchemaSpec, to_table: TableRef
    ) -> str:
        """Build a plain INSERT of every staging row into the target."""
        return (
            f"INSERT INTO {self.quote_table(to_table)} ({self.build_columns(schema)})"
            f" {self._build_union_select(from_tables, schema)}"
        )

    # =========================================================================
    # DDL guard
    # =========================================================================

    @contextmanager
    def ddl_auto_commit(self) -> Iterator[None]:
        """
        Run the enclosed DDL in auto-commit mode on Azure Synapse Analytics.

        Synapse rejects DDL such as CREATE TABLE inside a user transaction. The
        previous auto-commit mode is restored on every exit path. Other products
        run the block unchanged.
        """
        if not self.is_synapse:
            yield
            return

        auto_commit = self.session.get_auto_commit()
        try:
            self.session.set_auto_commit(True)
            yield
        finally:
            self.session.set_auto_commit(auto_commit)

    def execute_ddl_in_auto_commit(self, ddl: Callable[[], Any]) -> Any:
        with self.ddl_auto_commit():
            return ddl()

    def create_table(
        self,
        table: TableRef,
        schema: SchemaSpec,
        table_constraint: Optional[str] = None,
        table_option: Optional[str] = None,
    ) -> None:
        logger.debug("Creating table", table=str(table), columns=schema.count)
        with self.ddl_auto_commit():
            self.connector.create_table(
                table,
                schema,
                column_type_name=self.build_column_type_name,
                table_constraint=table_constraint,
                table_option=table_option,
            )

    def drop_table(self, table: TableRef) -> None:
        with self.ddl_auto_commit():
            self.connector.drop_table(table)

    def drop_table_if_exists(self, table: TableRef) -> None:
        """Drop the table when present. Existence is queried since there is no IF EXISTS."""
        if self.connector.table_exists(table):
            self.drop_table(table)

    def replace_table(
        self,
        from_table: TableRef,
        schema: SchemaSpec,
        to_table: TableRef,
        post_sql: Optional[str] = None,
    ) -> None:
        """
        Swap from_table into to_table's place.

        Drops to_table if present, renames from_table to to_table's name, then
        runs post_sql.
        """
        logger.debug("Replacing table", from_table=str(from_table), to_table=str(to_table))
        with self.ddl_auto_commit():
            self.drop_table_if_exists(to_table)
            self.connector.execute(self.build_rename_table_sql(from_table, to_table))
            if post_sql:
                self.connector.execute(post_sql)
            self.connector.commit_if_necessary()

    # =========================================================================
    # Collect execution
    # =========================================================================

    def collect_insert(
        self,
        from_tables: List[TableRef],
        schema: SchemaSpec,
        to_table: TableRef,
        truncate_destination_first: bool = False,
        pre_sql: Optional[str] = None,
        post_sql: Optional[str] = None,
    ) -> int:
        """
        Append every staging row to the target.

        Returns:
            Row count reported for the INSERT
        """
        if truncate_destination_first:
            self.connector.execute(self.connector.build_delete_all_sql(to_table))
        if pre_sql:
            self.connector.execute(pre_sql)
        inserted = self.connector.execute(self.build_append_sql(from_tables, schema, to_table))
        if post_sql:
            self.connector.execute(post_sql)
        self.connector.commit_if_necessary()

        logger.info("Collect insert completed", target_table=str(to_table), inserted=inserted)
        return inserted

    def collect_merge(
        self,
        from_tables: List[TableRef],
        schema: SchemaSpec,
        to_table: TableRef,
        merge_spec: MergeSpec,
        strategy: MergeStrategy = MergeStrategy.MERGE,
        pre_sql: Optional[str] = None,
        post_sql: Optional[str] = None,
    ) -> CollectResult:
        """
        Fold staging tables into the target by merge keys.

        Args:
            from_tables: Staging tables
            schema: Target column order
            to_table: Target table
            merge_spec: Merge keys and optional update rule
            strategy: MERGE for one statement, UPDATE_INSERT for update then insert
            pre_sql: SQL run before the merge
            post_sql: SQL run after the merge

        Returns:
            CollectResult with the row counts reported by the driver
        """
        strategy = MergeStrategy(strategy)
        logger.debug(
            "Executing collect merge",
            target_table=str(to_table),
            staging_tables=len(from_tables),
            merge_keys=list(merge_spec.merge_keys),
            strategy=strategy.value,
        )

        try:
            if pre_sql:
                self.connector.execute(pre_sql)

            result = CollectResult()
            if strategy == MergeStrategy.MERGE:
                result.merged = self.connector.execute(
                    self.build_collect_merge_sql(from_tables, schema, to_table, merge_spec)
                )
            else:
                result.updated = self.connector.execute(
                    self.build_collect_update_sql(from_tables, schema, to_table, merge_spec)
                )
                result.inserted = self.connector.execute(
                    self.build_collect_insert_sql(from_tables, schema, to_table, merge_spec)
                )

            if post_sql:
                self.connector.execute(post_sql)
            self.connector.commit_if_necessary()
        except Exception as e:
            logger.error(
                "Collect merge failed",
                target_table=str(to_table),
                error_type=type(e).__name__,
                error_message=str(e),
            )
            raise

        logger.info(
            "Collect merge completed",
            target_table=str(to_table),
            inserted=result.inserted,
            updated=result.updated,
            merged=result.merged,
        )
        return result

    def load(
        self, config: OutputConfig, from_tables: List[TableRef], schema: SchemaSpec
    ) -> CollectResult:
        """
        Load staging tables into the configured target table.

        Creates the target when missing, then runs collect_merge when the config
        has merge settings and collect_insert otherwise. before_load and
        after_load run around the collect statements.

        Args:
            config: Output settings
            from_tables: Staging tables
            schema: Target column order

        Returns:
            CollectResult with the row counts reported by the driver
        """
        target = config.target_table()
        if not self.connector.table_exists(target):
            self.create_table(
                target,
                schema,
                table_constraint=config.table_constraint,
                table_option=config.table_option,
            )

        if config.merge is None:
            inserted = self.collect_insert(
                from_tables,
                schema,
                target,
                pre_sql=config.before_load,
                post_sql=config.after_load,
            )
            return CollectResult(inserted=inserted)

        return self.collect_merge(
            from_tables,
            schema,
            target,
            config.merge.to_merge_spec(),
            strategy=config.merge.strategy,
            pre_sql=config.before_load,
            post_sql=config.after_load,
        )
