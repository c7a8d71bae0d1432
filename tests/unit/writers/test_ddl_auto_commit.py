"""Tests for the auto-commit guard around DDL."""

from unittest.mock import MagicMock

import pytest

from sqlserver_output.config import TargetVariant
from sqlserver_output.connections.base import GenericConnector
from sqlserver_output.models import ColumnSpec, SchemaSpec, TableRef
from sqlserver_output.writers.sql_server_writer import SqlServerWriter


def create_writer(session, product=TargetVariant.AZURE_SYNAPSE_ANALYTICS):
    return SqlServerWriter(GenericConnector(session), product=product)


class TestDdlAutoCommitOnSynapse:
    """Guard behaviour on Azure Synapse Analytics."""

    def test_forces_auto_commit_inside_block(self, session):
        writer = create_writer(session)

        with writer.ddl_auto_commit():
            assert session.auto_commit is True

        assert session.auto_commit is False

    def test_restores_previous_true(self, session):
        session.auto_commit = True
        writer = create_writer(session)

        with writer.ddl_auto_commit():
            pass

        assert session.auto_commit_history == [True, True]
        assert session.auto_commit is True

    def test_restores_and_reraises_on_failure(self, session):
        """The original error should reach the caller after restoring the mode."""
        writer = create_writer(session)
        error = RuntimeError("CREATE TABLE not allowed")

        def action():
            raise error

        with pytest.raises(RuntimeError) as exc_info:
            writer.execute_ddl_in_auto_commit(action)

        assert exc_info.value is error
        assert session.auto_commit is False
        assert session.auto_commit_history == [True, False]

    def test_failing_create_table_restores_mode(self, session):
        session.fail_on = "CREATE TABLE"
        writer = create_writer(session)

        with pytest.raises(RuntimeError, match="CREATE TABLE"):
            writer.create_table(TableRef("t"), SchemaSpec.of(ColumnSpec("id", "INT")))

        assert session.auto_commit is False

    def test_returns_action_result(self, session):
        writer = create_writer(session)
        assert writer.execute_ddl_in_auto_commit(lambda: 42) == 42

    def test_nested_guards_restore_outer_mode(self, session):
        writer = create_writer(session)

        with writer.ddl_auto_commit():
            with writer.ddl_auto_commit():
                assert session.auto_commit is True
            assert session.auto_commit is True

        assert session.auto_commit is False

    def test_mode_is_read_from_session(self):
        session = MagicMock()
        session.get_auto_commit.return_value = False
        writer = create_writer(session)

        with writer.ddl_auto_commit():
            session.set_auto_commit.assert_called_once_with(True)

        assert session.set_auto_commit.call_args_list[-1].args == (False,)


class TestDdlAutoCommitOnSqlServer:
    """Guard is a no-op on standard SQL Server."""

    def test_does_not_touch_session(self):
        session = MagicMock()
        writer = create_writer(session, TargetVariant.SQL_SERVER)

        with writer.ddl_auto_commit():
            pass

        session.get_auto_commit.assert_not_called()
        session.set_auto_commit.assert_not_called()

    def test_failure_propagates(self, session):
        writer = create_writer(session, TargetVariant.SQL_SERVER)

        def action():
            raise ValueError("boom")

        with pytest.raises(ValueError, match="boom"):
            writer.execute_ddl_in_auto_commit(action)

        assert session.auto_commit_history == []
