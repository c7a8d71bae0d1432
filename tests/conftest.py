import logging

import pytest


class RecordingSession:
    """In-memory session recording executed SQL and auto-commit changes."""

    def __init__(self, auto_commit=False, table_exists=False):
        self.auto_commit = auto_commit
        self.table_exists = table_exists
        self.executed = []
        self.queries = []
        self.auto_commit_history = []
        self.commits = 0
        self.closed = False
        self.fail_on = None
        self.rowcount = 1

    def get_auto_commit(self):
        return self.auto_commit

    def set_auto_commit(self, auto_commit):
        self.auto_commit_history.append(auto_commit)
        self.auto_commit = auto_commit

    def execute(self, sql, params=None):
        if self.fail_on and self.fail_on in sql:
            raise RuntimeError(f"execution failed: {self.fail_on}")
        self.executed.append((sql, self.auto_commit))
        return self.rowcount

    def fetch_one(self, sql, params=None):
        self.queries.append((sql, params))
        return (1,) if self.table_exists else None

    def commit(self):
        self.commits += 1

    def close(self):
        self.closed = True

    @property
    def statements(self):
        return [sql for sql, _ in self.executed]


@pytest.fixture
def session():
    return RecordingSession()


@pytest.fixture(autouse=True)
def configure_logging():
    """Drop Rich handlers from the package logger so tests log plainly."""
    package_logger = logging.getLogger("sqlserver_output")
    removed = [h for h in package_logger.handlers if "Rich" in h.__class__.__name__]
    for handler in removed:
        package_logger.removeHandler(handler)
    yield
    package_logger.propagate = False
    for handler in package_logger.handlers[:]:
        if "Rich" in handler.__class__.__name__:
            package_logger.removeHandler(handler)
    for handler in removed:
        package_logger.addHandler(handler)
