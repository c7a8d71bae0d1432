"""Dialect writers for sqlserver_output."""

from sqlserver_output.writers.sql_server_writer import SqlServerWriter

__all__ = ["SqlServerWriter"]
