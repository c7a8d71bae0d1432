"""Tests for SQL Server writer type mapping, rename and table lifecycle."""

from unittest.mock import MagicMock

import pytest

from sqlserver_output.config import TargetVariant
from sqlserver_output.connections.base import GenericConnector
from sqlserver_output.models import ColumnDeclareType, ColumnSpec, SchemaSpec, TableRef
from sqlserver_output.writers.sql_server_writer import SqlServerWriter

# =============================================================================
# Test Fixtures and Helpers
# =============================================================================


def create_writer(session=None, product=TargetVariant.SQL_SERVER):
    """Create a writer over a mock or recording session."""
    connector = GenericConnector(session if session is not None else MagicMock())
    return SqlServerWriter(connector, product=product)


def column(type_name, size=0, scale=-1, name="c"):
    return ColumnSpec(name=name, simple_type_name=type_name, size=size, scale=scale)


@pytest.fixture
def writer():
    return create_writer()


@pytest.fixture
def synapse_writer():
    return create_writer(product=TargetVariant.AZURE_SYNAPSE_ANALYTICS)


# =============================================================================
# Tests for Initialization
# =============================================================================


class TestSqlServerWriterInit:
    """Tests for SqlServerWriter initialization."""

    def test_default_product_is_sql_server(self):
        """Should target standard SQL Server unless told otherwise."""
        writer = create_writer()
        assert writer.product == TargetVariant.SQL_SERVER
        assert writer.is_synapse is False

    def test_accepts_product_string(self):
        """Should coerce product strings to TargetVariant."""
        writer = SqlServerWriter(GenericConnector(MagicMock()), product="azure_synapse_analytics")
        assert writer.product == TargetVariant.AZURE_SYNAPSE_ANALYTICS
        assert writer.is_synapse is True

    def test_rejects_unknown_product(self):
        """Should refuse products outside the closed variant set."""
        with pytest.raises(ValueError):
            SqlServerWriter(GenericConnector(MagicMock()), product="postgres")

    def test_from_connection_opens_session(self):
        """Should build the connector over a freshly opened session."""
        connection = MagicMock()
        connection.identifier_quote = "'"
        connection.product = TargetVariant.AZURE_SYNAPSE_ANALYTICS

        writer = SqlServerWriter.from_connection(connection)

        connection.open_session.assert_called_once()
        assert writer.session is connection.open_session.return_value
        assert writer.connector.identifier_quote == "'"
        assert writer.is_synapse is True

    def test_close_closes_session(self, session):
        """Should close the underlying session."""
        writer = create_writer(session)
        writer.close()
        assert session.closed is True


# =============================================================================
# Tests for Type Mapping
# =============================================================================


class TestBuildColumnTypeName:
    """Tests for build_column_type_name."""

    def test_boolean_maps_to_bit(self, writer):
        assert writer.build_column_type_name(column("BOOLEAN")) == "BIT"

    def test_clob_maps_to_nvarchar_max(self, writer):
        assert writer.build_column_type_name(column("CLOB")) == "NVARCHAR(max)"

    def test_clob_on_synapse_is_bounded(self, synapse_writer):
        """Should downgrade CLOB since Synapse has no NVARCHAR(max)."""
        assert synapse_writer.build_column_type_name(column("CLOB")) == "NVARCHAR(4000)"

    def test_timestamp_maps_to_datetime2(self, writer):
        assert writer.build_column_type_name(column("TIMESTAMP")) == "DATETIME2"

    def test_varchar_at_limit_keeps_size(self, writer):
        assert writer.build_column_type_name(column("VARCHAR", 8000)) == "VARCHAR(8000)"

    def test_varchar_over_limit_maps_to_max(self, writer):
        assert writer.build_column_type_name(column("VARCHAR", 8001)) == "VARCHAR(max)"

    def test_nvarchar_at_limit_keeps_size(self, writer):
        assert writer.build_column_type_name(column("NVARCHAR", 4000)) == "NVARCHAR(4000)"

    def test_nvarchar_over_limit_maps_to_varchar_max(self, writer):
        """Oversized NVARCHAR goes through the oversized VARCHAR rule."""
        assert writer.build_column_type_name(column("NVARCHAR", 4001)) == "VARCHAR(max)"

    def test_nvarchar_far_over_limit_maps_to_varchar_max(self, writer):
        assert writer.build_column_type_name(column("NVARCHAR", 10000)) == "VARCHAR(max)"

    def test_small_varchar_is_sized(self, writer):
        assert writer.build_column_type_name(column("VARCHAR", 64)) == "VARCHAR(64)"

    def test_bit_is_declared_without_size(self, writer):
        """Should not render BIT(1) even though BIT is sized generically."""
        assert writer.build_column_type_name(column("BIT", 1)) == "BIT"

    def test_float_is_declared_without_size(self, writer):
        assert writer.build_column_type_name(column("FLOAT", 53)) == "FLOAT"

    def test_decimal_with_scale(self, writer):
        assert writer.build_column_type_name(column("DECIMAL", 18, 4)) == "DECIMAL(18,4)"

    def test_decimal_without_scale_is_simple(self, writer):
        assert writer.build_column_type_name(column("DECIMAL", 18)) == "DECIMAL"

    def test_unknown_type_falls_through(self, writer):
        """Should never raise for types it does not know."""
        assert writer.build_column_type_name(column("GEOGRAPHY")) == "GEOGRAPHY"

    def test_synapse_uses_same_varchar_rules(self, synapse_writer):
        assert synapse_writer.build_column_type_name(column("VARCHAR", 9000)) == "VARCHAR(max)"
        assert synapse_writer.build_column_type_name(column("NVARCHAR", 4001)) == "VARCHAR(max)"


class TestGetColumnDeclareType:
    """Tests for get_column_declare_type."""

    @pytest.mark.parametrize("type_name", ["BIT", "FLOAT"])
    def test_simple_types(self, writer, type_name):
        assert writer.get_column_declare_type(type_name, column(type_name)) == ColumnDeclareType.SIMPLE

    def test_varchar_defers_to_generic(self, writer):
        assert writer.get_column_declare_type("VARCHAR", column("VARCHAR", 10)) == ColumnDeclareType.SIZE

    def test_numeric_defers_to_generic(self, writer):
        assert (
            writer.get_column_declare_type("NUMERIC", column("NUMERIC", 10, 2))
            == ColumnDeclareType.SIZE_AND_SCALE
        )

    def test_int_is_simple(self, writer):
        assert writer.get_column_declare_type("INT", column("INT")) == ColumnDeclareType.SIMPLE


# =============================================================================
# Tests for Rename
# =============================================================================


class TestBuildRenameTableSql:
    """Tests for build_rename_table_sql."""

    def test_sp_rename_with_schema(self, writer):
        """Should pass the schema-qualified source as one identifier."""
        sql = writer.build_rename_table_sql(
            TableRef("orders", "dbo"), TableRef("orders_old", "dbo")
        )
        assert sql == 'EXEC sp_rename "dbo.orders", "orders_old", \'OBJECT\''

    def test_sp_rename_without_schema(self, writer):
        sql = writer.build_rename_table_sql(TableRef("orders"), TableRef("orders_old"))
        assert sql == 'EXEC sp_rename "orders", "orders_old", \'OBJECT\''

    def test_sp_rename_empty_schema_matches_quote_table(self, writer):
        """Should render an empty schema the same way quote_table does."""
        source = TableRef.parse(".orders")
        sql = writer.build_rename_table_sql(source, TableRef("orders_old"))

        assert sql == 'EXEC sp_rename "orders", "orders_old", \'OBJECT\''
        assert writer.quote_table(source) == '"orders"'

    def test_sp_rename_ignores_destination_schema(self, writer):
        """Should never try to move the table into another schema."""
        sql = writer.build_rename_table_sql(
            TableRef("orders", "staging"), TableRef("orders", "dbo")
        )
        assert sql == 'EXEC sp_rename "staging.orders", "orders", \'OBJECT\''

    def test_synapse_rename_object(self, synapse_writer):
        sql = synapse_writer.build_rename_table_sql(
            TableRef.parse("dbo.orders"), TableRef("orders_old")
        )
        assert sql == 'RENAME OBJECT "dbo"."orders" TO "orders_old"'

    def test_synapse_rename_with_database(self, synapse_writer):
        sql = synapse_writer.build_rename_table_sql(
            TableRef.parse("dw.dbo.orders"), TableRef("orders_old", "dbo")
        )
        assert sql == 'RENAME OBJECT "dw"."dbo"."orders" TO "orders_old"'

    def test_round_trip_restores_name(self, writer):
        """Renaming back uses the qualified destination as the new source."""
        original = TableRef("orders", "dbo")
        renamed = original.with_table_name("orders_old")

        forward = writer.build_rename_table_sql(original, renamed)
        back = writer.build_rename_table_sql(renamed, original)

        assert forward == 'EXEC sp_rename "dbo.orders", "orders_old", \'OBJECT\''
        assert back == 'EXEC sp_rename "dbo.orders_old", "orders", \'OBJECT\''

    def test_synapse_round_trip_is_fully_qualified(self, synapse_writer):
        original = TableRef("orders", "dbo")
        renamed = original.with_table_name("orders_old")

        forward = synapse_writer.build_rename_table_sql(original, renamed)
        back = synapse_writer.build_rename_table_sql(renamed, original)

        assert forward == 'RENAME OBJECT "dbo"."orders" TO "orders_old"'
        assert back == 'RENAME OBJECT "dbo"."orders_old" TO "orders"'

    def test_no_if_exists_clause(self, writer, synapse_writer):
        assert writer.supports_table_if_exists_clause() is False
        assert synapse_writer.supports_table_if_exists_clause() is False


# =============================================================================
# Tests for Table Lifecycle
# =============================================================================


class TestCreateTable:
    """Tests for create_table."""

    def test_uses_dialect_types(self, session):
        """Should render columns with the SQL Server type mapping."""
        writer = create_writer(session)
        schema = SchemaSpec.of(
            ColumnSpec("id", "BIGINT"),
            ColumnSpec("active", "BOOLEAN"),
            ColumnSpec("note", "VARCHAR", 9000),
            ColumnSpec("created_at", "TIMESTAMP"),
        )

        writer.create_table(TableRef("orders", "dbo"), schema)

        assert session.statements == [
            'CREATE TABLE "dbo"."orders" ("id" BIGINT, "active" BIT, '
            '"note" VARCHAR(max), "created_at" DATETIME2)'
        ]
        assert session.commits == 1

    def test_declared_type_overrides_mapping(self, session):
        writer = create_writer(session)
        schema = SchemaSpec.of(ColumnSpec("amount", "DECIMAL", declared_type="MONEY"))

        writer.create_table(TableRef("orders"), schema, table_option="WITH (HEAP)")

        assert session.statements == ['CREATE TABLE "orders" ("amount" MONEY) WITH (HEAP)']

    def test_sql_server_keeps_transaction_mode(self, session):
        writer = create_writer(session)
        writer.create_table(TableRef("t"), SchemaSpec.of(ColumnSpec("id", "INT")))

        assert session.auto_commit_history == []
        assert session.executed[0][1] is False

    def test_synapse_runs_in_auto_commit(self, session):
        """Should run CREATE TABLE in auto-commit and restore the mode after."""
        writer = create_writer(session, TargetVariant.AZURE_SYNAPSE_ANALYTICS)
        writer.create_table(TableRef("t"), SchemaSpec.of(ColumnSpec("id", "INT")))

        assert session.executed[0][1] is True
        assert session.auto_commit_history == [True, False]
        assert session.auto_commit is False
        assert session.commits == 0


class TestDropTable:
    """Tests for drop_table and drop_table_if_exists."""

    def test_drop_table(self, session):
        writer = create_writer(session)
        writer.drop_table(TableRef("orders", "dbo"))
        assert session.statements == ['DROP TABLE "dbo"."orders"']

    def test_drop_if_exists_queries_first(self, session):
        """Should look the table up instead of using DROP TABLE IF EXISTS."""
        session.table_exists = True
        writer = create_writer(session)

        writer.drop_table_if_exists(TableRef("orders", "dbo"))

        assert session.queries[0][1] == ["dbo", "orders"]
        assert session.statements == ['DROP TABLE "dbo"."orders"']

    def test_drop_if_exists_skips_missing_table(self, session):
        writer = create_writer(session)
        writer.drop_table_if_exists(TableRef("orders"))
        assert session.statements == []
        assert len(session.queries) == 1

    def test_synapse_drop_in_auto_commit(self, session):
        writer = create_writer(session, TargetVariant.AZURE_SYNAPSE_ANALYTICS)
        writer.drop_table(TableRef("orders"))
        assert session.executed == [('DROP TABLE "orders"', True)]
        assert session.auto_commit is False


class TestReplaceTable:
    """Tests for replace_table."""

    def test_drops_then_renames(self, session):
        session.table_exists = True
        writer = create_writer(session)

        writer.replace_table(
            TableRef("orders_tmp", "dbo"),
            SchemaSpec.of(ColumnSpec("id", "INT")),
            TableRef("orders", "dbo"),
            post_sql="UPDATE STATISTICS dbo.orders",
        )

        assert session.statements == [
            'DROP TABLE "dbo"."orders"',
            'EXEC sp_rename "dbo.orders_tmp", "orders", \'OBJECT\'',
            "UPDATE STATISTICS dbo.orders",
        ]
        assert session.commits == 1

    def test_synapse_replace_in_auto_commit(self, session):
        writer = create_writer(session, TargetVariant.AZURE_SYNAPSE_ANALYTICS)

        writer.replace_table(
            TableRef("orders_tmp", "dbo"),
            SchemaSpec.of(ColumnSpec("id", "INT")),
            TableRef("orders", "dbo"),
        )

        assert session.executed == [('RENAME OBJECT "dbo"."orders_tmp" TO "orders"', True)]
        assert session.auto_commit is False
