"""Configuration models for sqlserver_output."""

from enum import Enum
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from sqlserver_output.exceptions import ConfigValidationError
from sqlserver_output.models import MergeSpec, TableRef
from sqlserver_output.utils.config_loader import load_yaml_with_env


class TargetVariant(str, Enum):
    """
    SQL Server product the generated SQL must run on.

    Values:
    * `sql_server` - SQL Server / Azure SQL Database.
    * `azure_synapse_analytics` - Synapse dedicated SQL pool. No `sp_rename` for
      tables, no NVARCHAR(max), and no DDL inside user transactions.
    """

    SQL_SERVER = "sql_server"
    AZURE_SYNAPSE_ANALYTICS = "azure_synapse_analytics"


class AuthMode(str, Enum):
    """Supported authentication modes."""

    SQL = "sql"
    AAD_MSI = "aad_msi"


class MergeStrategy(str, Enum):
    """How staging tables are folded into the target table."""

    MERGE = "merge"  # Single MERGE statement
    UPDATE_INSERT = "update_insert"  # UPDATE ... JOIN, then INSERT ... WHERE NOT EXISTS


class ConnectionConfig(BaseModel):
    """
    Connection settings for the target database.

    Example:
    ```yaml
    connection:
      server: myserver.database.windows.net
      database: warehouse
      auth_mode: sql
      username: loader
      password: ${SQL_PASSWORD}
      product: azure_synapse_analytics
    ```
    """

    server: str = Field(description="SQL server hostname")
    database: str = Field(description="Database name")
    driver: str = Field(default="ODBC Driver 18 for SQL Server", description="ODBC driver name")
    port: int = Field(default=1433, description="SQL Server port")
    timeout: int = Field(default=30, description="Connection timeout in seconds")
    auth_mode: AuthMode = Field(default=AuthMode.AAD_MSI, description="sql or aad_msi")
    username: Optional[str] = Field(default=None, description="SQL auth username")
    password: Optional[str] = Field(default=None, description="SQL auth password")
    product: TargetVariant = Field(
        default=TargetVariant.SQL_SERVER,
        description="Target product: sql_server or azure_synapse_analytics",
    )
    identifier_quote: str = Field(
        default='"',
        description="Quote string wrapped around identifiers in generated SQL",
    )

    @model_validator(mode="after")
    def check_credentials(self):
        if self.auth_mode == AuthMode.SQL and not (self.username and self.password):
            raise ValueError("auth_mode 'sql' requires username and password")
        return self


class MergeConfig(BaseModel):
    """
    Merge settings for collect-merge.

    Example:
    ```yaml
    merge:
      keys: [order_id]
      rule:
        - "amount = S.amount"
        - "updated_at = GETUTCDATE()"
      strategy: update_insert
    ```
    """

    keys: List[str] = Field(description="Columns matching staging rows to target rows")
    rule: Optional[List[str]] = Field(
        default=None,
        description="Custom 'column = expression' fragments for the matched-row update",
    )
    strategy: MergeStrategy = Field(default=MergeStrategy.MERGE, description="merge or update_insert")

    @field_validator("keys")
    @classmethod
    def keys_not_empty(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("merge keys must not be empty")
        return v

    @field_validator("rule")
    @classmethod
    def rule_not_empty(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is not None and not v:
            raise ValueError("merge rule must contain at least one fragment when set")
        return v

    def to_merge_spec(self) -> MergeSpec:
        return MergeSpec.of(self.keys, self.rule)


class OutputConfig(BaseModel):
    """Settings for loading staged rows into one target table."""

    connection: ConnectionConfig
    table: str = Field(description="Target table, 'schema.table' or 'table'")
    merge: Optional[MergeConfig] = None
    table_constraint: Optional[str] = Field(
        default=None, description="Constraint clause appended to CREATE TABLE"
    )
    table_option: Optional[str] = Field(
        default=None, description="Option text appended after CREATE TABLE (...)"
    )
    before_load: Optional[str] = Field(default=None, description="SQL run before collecting")
    after_load: Optional[str] = Field(default=None, description="SQL run after collecting")

    @field_validator("table")
    @classmethod
    def table_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("table must not be blank")
        return v.strip()

    def target_table(self) -> TableRef:
        return TableRef.parse(self.table)


def load_output_config(path: str, env: Optional[str] = None) -> OutputConfig:
    """
    Load and validate an output configuration file.

    Args:
        path: YAML file path
        env: Optional environment name applied from the 'environments' block

    Returns:
        Validated OutputConfig

    Raises:
        FileNotFoundError: If the file or one of its imports does not exist
        ConfigValidationError: If the YAML cannot be parsed or loaded, or does
            not match the models
    """
    try:
        data = load_yaml_with_env(path, env=env)
    except yaml.YAMLError as e:
        raise ConfigValidationError("Invalid YAML", file=path, errors=[str(e)]) from e
    except ValueError as e:
        raise ConfigValidationError(str(e), file=path) from e

    try:
        return OutputConfig.model_validate(data)
    except ValidationError as e:
        errors = [
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        ]
        raise ConfigValidationError(
            f"{len(errors)} invalid setting(s)", file=path, errors=errors
        ) from e
