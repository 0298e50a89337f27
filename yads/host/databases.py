"""
Project databases on the host's own MySQL and PostgreSQL servers.

The Docker stack has DatabaseManager for its containers; this module covers
host mode, where the servers are installed packages. MySQL is driven with the
``mysql`` client as root (password through ``MYSQL_PWD``), PostgreSQL through
``sudo -u postgres psql``.
"""

import logging

from ..containers.databases import DatabaseCredentials
from ..errors import ValidationError
from ..validation import validate_database_name, validate_project_name
from .base import HostComponent

logger = logging.getLogger(__name__)

HOST_DATABASE_TYPES = ("mysql", "postgresql")
TYPE_ALIASES = {"postgres": "postgresql"}

DEFAULT_ROOT_PASSWORD = "yads123"

ENGINES = ("mysql", "postgresql", "redis")

ENGINE_LABELS = {"mysql": "MySQL", "postgresql": "PostgreSQL", "redis": "Redis"}

# Packages per engine and OS family
ENGINE_PACKAGES = {
    "mysql": {"debian": ["mysql-server"], "rhel": ["mysql-server"], "arch": ["mysql"]},
    "postgresql": {
        "debian": ["postgresql", "postgresql-contrib"],
        "rhel": ["postgresql", "postgresql-server"],
        "arch": ["postgresql"],
    },
    "redis": {"debian": ["redis-server"], "rhel": ["redis"], "arch": ["redis"]},
}

# systemd unit per engine and OS family
ENGINE_UNITS = {
    "mysql": {"debian": "mysql", "rhel": "mysqld", "arch": "mysqld"},
    "postgresql": {"debian": "postgresql", "rhel": "postgresql", "arch": "postgresql"},
    "redis": {"debian": "redis-server", "rhel": "redis", "arch": "redis"},
}

PORTS = {"mysql": 3306, "postgresql": 5432}


def _check_type(db_type: str) -> str:
    db_type = TYPE_ALIASES.get(db_type, db_type)
    if db_type not in HOST_DATABASE_TYPES:
        raise ValidationError(
            f"Unknown database type '{db_type}'. Choose from: {', '.join(HOST_DATABASE_TYPES)}"
        )
    return db_type


class HostDatabaseManager(HostComponent):
    """Install, inspect and provision the databases running on the host."""

    @property
    def root_password(self) -> str:
        return self.config.get("MYSQL_ROOT_PASSWORD") or DEFAULT_ROOT_PASSWORD

    def _mysql(self, sql: str) -> None:
        self.runner.run(
            ["mysql", "-u", "root", "-N", "-B", "-e", sql],
            env={"MYSQL_PWD": self.root_password},
        )

    def _psql(self, sql: str) -> None:
        self.runner.run(["sudo", "-u", "postgres", "psql", "-v", "ON_ERROR_STOP=1", "-c", sql])

    def _pg_has(self, sql: str) -> bool:
        result = self.runner.query(["sudo", "-u", "postgres", "psql", "-tAc", sql])
        return result.ok and result.stdout.strip() == "1"

    def status(self) -> dict[str, bool]:
        """Running flag per engine, keyed by its display name."""
        return {
            ENGINE_LABELS[engine]: self.is_active(ENGINE_UNITS[engine][self.family])
            for engine in ENGINES
        }

    def install(self, engine: str) -> None:
        """Install one engine from the distribution packages and start it.

        Raises:
            ValidationError: If the engine is not mysql, postgresql or redis
        """
        engine = TYPE_ALIASES.get(engine, engine)
        if engine not in ENGINES:
            raise ValidationError(f"Unknown database engine '{engine}'. Choose from: {', '.join(ENGINES)}")

        label = ENGINE_LABELS[engine]
        self.output.info(f"Installing {label}...")
        self.install_packages(*ENGINE_PACKAGES[engine][self.family])
        if engine == "postgresql" and self.family == "rhel":
            self.runner.run(["postgresql-setup", "--initdb"], sudo=True)
        self.systemctl("enable", "--now", ENGINE_UNITS[engine][self.family])
        self.output.success(f"{label} installed")

    def create(self, project: str, db_type: str = "mysql") -> DatabaseCredentials:
        """Create ``<project>_dev`` owned by user ``<project>`` / ``<project>_pass``.

        Existing databases and users are kept, so running it twice is safe.

        Raises:
            ValidationError: If the project name or database type is invalid
            DependencyMissingError: If the database client is not installed
        """
        validate_project_name(project)
        db_type = _check_type(db_type)
        name = validate_database_name(f"{project}_dev")
        user, password = project, f"{project}_pass"
        self.output.info(f"Creating {db_type} database for project: {project}")

        if db_type == "mysql":
            self.runner.require("mysql", "Install it with 'yads database install mysql'.")
            self._mysql(f"CREATE DATABASE IF NOT EXISTS `{name}`;")
            self._mysql(f"CREATE USER IF NOT EXISTS '{user}'@'localhost' IDENTIFIED BY '{password}';")
            self._mysql(f"GRANT ALL PRIVILEGES ON `{name}`.* TO '{user}'@'localhost';")
            self._mysql("FLUSH PRIVILEGES;")
        else:
            self.runner.require("psql", "Install it with 'yads database install postgresql'.")
            if not self._pg_has(f"SELECT 1 FROM pg_roles WHERE rolname = '{user}'"):
                self._psql(f"CREATE USER \"{user}\" WITH PASSWORD '{password}';")
            if not self._pg_has(f"SELECT 1 FROM pg_database WHERE datname = '{name}'"):
                self._psql(f'CREATE DATABASE "{name}" OWNER "{user}";')
            self._psql(f'GRANT ALL PRIVILEGES ON DATABASE "{name}" TO "{user}";')

        self.output.success(f"{db_type} database created: {name}")
        self.output.success(f"{db_type} user created: {user} / {password}")
        return DatabaseCredentials(
            name=name, type=db_type, user=user, password=password, host="localhost", port=PORTS[db_type]
        )
