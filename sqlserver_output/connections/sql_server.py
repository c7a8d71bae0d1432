"""
SQL Server Connection
=====================

Connection settings for SQL Server, Azure SQL Database and Azure Synapse
Analytics dedicated pools. Opens DB-API sessions through a SQLAlchemy engine.
"""

from typing import List, Optional
from urllib.parse import quote_plus

from sqlalchemy import create_engine

from sqlserver_output.config import AuthMode, ConnectionConfig, TargetVariant
from sqlserver_output.connections.session import DbapiSession
from sqlserver_output.exceptions import ConnectionError
from sqlserver_output.utils.logging import logger


class SqlServerConnection:
    """
    SQL Server connection.

    Supports:
    - SQL authentication (username/password)
    - Azure Active Directory Managed Identity
    - Azure Synapse Analytics via `product`
    """

    def __init__(
        self,
        server: str,
        database: str,
        driver: str = "ODBC Driver 18 for SQL Server",
        username: Optional[str] = None,
        password: Optional[str] = None,
        auth_mode: AuthMode = AuthMode.AAD_MSI,
        port: int = 1433,
        timeout: int = 30,
        product: TargetVariant = TargetVariant.SQL_SERVER,
        identifier_quote: str = '"',
    ):
        """
        Initialize SQL Server connection settings.

        Args:
            server: SQL server hostname (e.g., 'myserver.database.windows.net')
            database: Database name
            driver: ODBC driver name (default: ODBC Driver 18 for SQL Server)
            username: SQL auth username (required if auth_mode='sql')
            password: SQL auth password (required if auth_mode='sql')
            auth_mode: Authentication mode ('sql', 'aad_msi')
            port: SQL Server port (default: 1433)
            timeout: Connection timeout in seconds (default: 30)
            product: Target product the generated SQL must run on
            identifier_quote: Quote string for identifiers in generated SQL
        """
        self.server = server
        self.database = database
        self.driver = driver
        self.username = username
        self.password = password
        self.auth_mode = AuthMode(auth_mode)
        self.port = port
        self.timeout = timeout
        self.product = TargetVariant(product)
        self.identifier_quote = identifier_quote
        self._engine = None

        if password:
            logger.register_secret(password)

    @classmethod
    def from_config(cls, config: ConnectionConfig) -> "SqlServerConnection":
        return cls(
            server=config.server,
            database=config.database,
            driver=config.driver,
            username=config.username,
            password=config.password,
            auth_mode=config.auth_mode,
            port=config.port,
            timeout=config.timeout,
            product=config.product,
            identifier_quote=config.identifier_quote,
        )

    @property
    def name(self) -> str:
        return f"SqlServer({self.server}/{self.database})"

    def validate(self) -> None:
        """Validate connection settings."""
        if not self.server:
            raise ValueError("SQL Server connection requires 'server'")
        if not self.database:
            raise ValueError("SQL Server connection requires 'database'")
        if self.auth_mode == AuthMode.SQL and not (self.username and self.password):
            raise ValueError("SQL Server with auth_mode='sql' requires username and password")

    def odbc_dsn(self) -> str:
        """Build ODBC connection string.

        Example:
            >>> conn = SqlServerConnection(server="myserver.database.windows.net", database="mydb")
            >>> conn.odbc_dsn()
            'Driver={ODBC Driver 18 for SQL Server};Server=tcp:myserver...'
        """
        dsn = (
            f"Driver={{{self.driver}}};"
            f"Server=tcp:{self.server},{self.port};"
            f"Database={self.database};"
            f"Encrypt=yes;"
            f"TrustServerCertificate=yes;"
            f"Connection Timeout={self.timeout};"
        )

        if self.auth_mode == AuthMode.SQL:
            dsn += f"UID={self.username};PWD={self.password};"
        elif self.auth_mode == AuthMode.AAD_MSI:
            dsn += "Authentication=ActiveDirectoryMsi;"

        return dsn

    def get_engine(self):
        """
        Get or create SQLAlchemy engine.

        Raises:
            ConnectionError: If the engine cannot be created
        """
        if self._engine is not None:
            return self._engine

        self.validate()
        connection_url = f"mssql+pyodbc:///?odbc_connect={quote_plus(self.odbc_dsn())}"
        try:
            self._engine = create_engine(
                connection_url,
                pool_pre_ping=True,
                pool_recycle=3600,
                echo=False,
            )
        except Exception as e:
            raise ConnectionError(
                connection_name=self.name,
                reason=f"Failed to create engine: {e}",
                suggestions=self._get_error_suggestions(str(e)),
            ) from e

        logger.debug("Created SQLAlchemy engine", server=self.server, database=self.database)
        return self._engine

    def open_session(self) -> DbapiSession:
        """
        Check out a DB-API connection and wrap it in a session.

        The session owns the pooled connection; closing it returns the
        connection to the pool.
        """
        engine = self.get_engine()
        try:
            raw = engine.raw_connection()
        except Exception as e:
            raise ConnectionError(
                connection_name=self.name,
                reason=f"Failed to open connection: {e}",
                suggestions=self._get_error_suggestions(str(e)),
            ) from e
        return DbapiSession(raw.driver_connection, owner=raw)

    def close(self):
        """Dispose of the engine and its pooled connections."""
        if self._engine:
            self._engine.dispose()
            self._engine = None

    def _get_error_suggestions(self, error_msg: str) -> List[str]:
        """Generate suggestions based on error message."""
        suggestions = []
        error_lower = error_msg.lower()

        if "login failed" in error_lower:
            suggestions.append("Check username and password")
            suggestions.append(f"Verify auth_mode is correct (current: {self.auth_mode.value})")

        if "firewall" in error_lower or "tcp provider" in error_lower:
            suggestions.append("Check SQL Server firewall rules")
            suggestions.append("Ensure client IP is allowed")

        if "driver" in error_lower:
            suggestions.append(f"Verify ODBC driver '{self.driver}' is installed")
            suggestions.append("On Linux: sudo apt-get install msodbcsql18")

        return suggestions
