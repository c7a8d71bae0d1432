"""Connection implementations for sqlserver_output."""

from sqlserver_output.connections.base import GenericConnector
from sqlserver_output.connections.session import DbapiSession
from sqlserver_output.connections.sql_server import SqlServerConnection

__all__ = ["GenericConnector", "DbapiSession", "SqlServerConnection"]
