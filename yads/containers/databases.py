"""
MySQL and PostgreSQL administration inside the stack containers.

All SQL runs through ``docker exec`` against ``yads-mysql`` or
``yads-postgres``. Database names are validated and quoted as identifiers;
the MySQL root password is passed through the environment, not argv.
"""

import logging
from pathlib import Path

from pydantic import BaseModel, Field

from ..base import Component
from ..config import read_env_file
from ..errors import ConfigurationError, ValidationError
from ..shell import CommandResult
from ..validation import validate_database_name

logger = logging.getLogger(__name__)

DATABASE_TYPES = ("mysql", "postgres")

MYSQL_CONTAINER = "yads-mysql"
POSTGRES_CONTAINER = "yads-postgres"
POSTGRES_USER = "yads"
DEFAULT_ROOT_PASSWORD = "yads123"

MYSQL_SYSTEM_DATABASES = {"information_schema", "performance_schema", "mysql", "sys"}


class DatabaseCredentials(BaseModel):
    """Connection details of a database created by YADS."""

    name: str = Field(..., description="Database name", examples=["blog"])
    type: str = Field(..., description="mysql or postgres")
    user: str = Field(..., description="Owner account", examples=["blog_user"])
    password: str = Field(..., description="Owner password", examples=["blog_pass"])
    host: str = Field(..., description="Host name inside the stack network", examples=["mysql"])
    port: int = Field(..., description="Server port", examples=[3306])


class DatabaseInfo(BaseModel):
    """Size and tables of a database."""

    name: str
    type: str
    size: str = Field(..., description="Human readable size", examples=["1.25 MB", "8137 kB"])
    tables: list[str] = Field(default_factory=list)


def _check_type(db_type: str) -> str:
    if db_type not in DATABASE_TYPES:
        raise ValidationError(
            f"Unknown database type '{db_type}'. Choose from: {', '.join(DATABASE_TYPES)}"
        )
    return db_type


class DatabaseManager(Component):
    """Create, drop, inspect, back up and restore stack databases."""

    @property
    def root_password(self) -> str:
        env = read_env_file(Path(self.settings.stack_env_file))
        return env.get("MYSQL_ROOT_PASSWORD") or DEFAULT_ROOT_PASSWORD

    # Command builders

    def _mysql(self, *args: str, interactive: bool = False) -> list[str]:
        exec_flags = ["-i"] if interactive else []
        return [
            "docker", "exec", *exec_flags, "-e", f"MYSQL_PWD={self.root_password}",
            MYSQL_CONTAINER, *args,
        ]

    def _mysql_sql(self, sql: str) -> list[str]:
        return self._mysql("mysql", "-u", "root", "-N", "-B", "-e", sql)

    def _psql(self, sql: str, database: str = "postgres") -> list[str]:
        return [
            "docker", "exec", POSTGRES_CONTAINER,
            "psql", "-U", POSTGRES_USER, "-d", database, "-tA", "-c", sql,
        ]

    def _pg_exists(self, name: str) -> bool:
        result = self.runner.query(self._psql(f"SELECT 1 FROM pg_database WHERE datname = '{name}'"))
        return result.ok and result.stdout.strip() == "1"

    # Operations

    def create(self, name: str, db_type: str = "mysql") -> DatabaseCredentials:
        """Create a database and its owner ``<name>_user`` / ``<name>_pass``."""
        validate_database_name(name)
        _check_type(db_type)
        user, password = f"{name}_user", f"{name}_pass"
        self.output.info(f"Creating {db_type} database: {name}")

        if db_type == "mysql":
            self.runner.run(self._mysql_sql(f"CREATE DATABASE IF NOT EXISTS `{name}`;"))
            self.runner.run(
                self._mysql_sql(f"CREATE USER IF NOT EXISTS '{user}'@'%' IDENTIFIED BY '{password}';")
            )
            self.runner.run(self._mysql_sql(f"GRANT ALL PRIVILEGES ON `{name}`.* TO '{user}'@'%';"))
            self.runner.run(self._mysql_sql("FLUSH PRIVILEGES;"))
            credentials = DatabaseCredentials(
                name=name, type=db_type, user=user, password=password, host="mysql", port=3306
            )
        else:
            self.runner.run(self._psql(f'CREATE DATABASE "{name}";'))
            self.runner.run(self._psql(f"CREATE USER \"{user}\" WITH PASSWORD '{password}';"))
            self.runner.run(self._psql(f'GRANT ALL PRIVILEGES ON DATABASE "{name}" TO "{user}";'))
            credentials = DatabaseCredentials(
                name=name, type=db_type, user=user, password=password, host="postgres", port=5432
            )

        self.output.success(f"{db_type} database '{name}' created")
        return credentials

    def drop(self, name: str, db_type: str = "mysql") -> None:
        """Drop a database and its owner account."""
        validate_database_name(name)
        _check_type(db_type)
        user = f"{name}_user"

        if db_type == "mysql":
            self.runner.run(self._mysql_sql(f"DROP DATABASE IF EXISTS `{name}`;"))
            self.runner.run(self._mysql_sql(f"DROP USER IF EXISTS '{user}'@'%';"))
        else:
            self.runner.run(self._psql(f'DROP DATABASE IF EXISTS "{name}";'))
            self.runner.run(self._psql(f'DROP USER IF EXISTS "{user}";'))
        self.output.success(f"{db_type} database '{name}' dropped")

    def list(self, db_type: str = "all") -> dict[str, list[str]]:
        """User databases per server type; ``all`` queries both."""
        types = DATABASE_TYPES if db_type == "all" else (_check_type(db_type),)
        listing = {}
        for kind in types:
            if kind == "mysql":
                result = self.runner.query(self._mysql_sql("SHOW DATABASES;"), check=True)
                listing[kind] = [db for db in result.lines if db.strip() not in MYSQL_SYSTEM_DATABASES]
            else:
                result = self.runner.query(
                    self._psql("SELECT datname FROM pg_database WHERE datistemplate = false AND datname <> 'postgres' ORDER BY datname;"),
                    check=True,
                )
                listing[kind] = [db.strip() for db in result.lines]
        return listing

    def info(self, name: str, db_type: str = "mysql") -> DatabaseInfo:
        validate_database_name(name)
        _check_type(db_type)

        if db_type == "mysql":
            size_result = self.runner.query(
                self._mysql_sql(
                    "SELECT ROUND(SUM(data_length + index_length) / 1024 / 1024, 2) "
                    f"FROM information_schema.tables WHERE table_schema = '{name}';"
                ),
                check=True,
            )
            raw_size = size_result.stdout.strip()
            size = f"{raw_size if raw_size and raw_size != 'NULL' else '0'} MB"
            tables = self.runner.query(self._mysql_sql(f"SHOW TABLES FROM `{name}`;"), check=True).lines
        else:
            size = self.runner.query(
                self._psql(f"SELECT pg_size_pretty(pg_database_size('{name}'));", database=name),
                check=True,
            ).stdout.strip()
            tables = self.runner.query(
                self._psql("SELECT tablename FROM pg_tables WHERE schemaname = 'public' ORDER BY tablename;", database=name),
                check=True,
            ).lines

        return DatabaseInfo(name=name, type=db_type, size=size, tables=[table.strip() for table in tables])

    def backup(self, name: str, backup_file: Path, db_type: str = "mysql") -> Path:
        """Dump a database into ``backup_file``."""
        validate_database_name(name)
        _check_type(db_type)
        backup_file = Path(backup_file)
        if db_type == "mysql":
            command = self._mysql("mysqldump", "-u", "root", name)
        else:
            command = ["docker", "exec", POSTGRES_CONTAINER, "pg_dump", "-U", POSTGRES_USER, name]
        self.runner.run(command, stdout_path=backup_file)
        self.output.success(f"{db_type} database '{name}' backed up to: {backup_file}")
        return backup_file

    def restore(self, name: str, backup_file: Path, db_type: str = "mysql") -> CommandResult:
        """Load a dump into ``name``, creating the database when needed.

        Raises:
            ConfigurationError: If the backup file does not exist
        """
        validate_database_name(name)
        _check_type(db_type)
        backup_file = Path(backup_file)
        if not backup_file.is_file():
            raise ConfigurationError(f"Backup file not found: {backup_file}")

        if db_type == "mysql":
            self.runner.run(self._mysql_sql(f"CREATE DATABASE IF NOT EXISTS `{name}`;"))
            command = self._mysql("mysql", "-u", "root", name, interactive=True)
        else:
            if not self._pg_exists(name):
                self.runner.run(self._psql(f'CREATE DATABASE "{name}";'))
            command = ["docker", "exec", "-i", POSTGRES_CONTAINER, "psql", "-U", POSTGRES_USER, "-d", name]

        result = self.runner.run(command, stdin_path=backup_file)
        self.output.success(f"{db_type} database '{name}' restored from: {backup_file}")
        return result
