from setuptools import find_packages, setup

setup(
    name="sqlserver-output",
    version="0.3.0",
    description="SQL Server and Azure Synapse SQL for staging-table bulk loads",
    packages=find_packages(include=["sqlserver_output", "sqlserver_output.*"]),
    python_requires=">=3.9",
    install_requires=[
        "pydantic>=2.0",
        "PyYAML>=6.0",
        "rich>=13.0",
        "SQLAlchemy>=2.0",
        "pyodbc>=5.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
)
