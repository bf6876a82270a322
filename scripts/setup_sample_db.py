"""Utility that prepares a sample database (Docker MySQL/PostgreSQL or a SQLite file) for dbmanager."""

from __future__ import annotations

import argparse
import asyncio
import subprocess
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from dbmanager.config import CONFIG_FILE, AppConfig, ConnectionProfileConfig, load_config, save_config
from dbmanager.connections import DatabaseError
from dbmanager.factory import DEV_DATABASE, DEV_PASSWORD, DEV_USER, DatabaseProxyFactory
from dbmanager.models import DatabaseType

PROFILE_NAME = "Sample {engine}"

ENGINES = {
    "mysql": {
        "type": DatabaseType.MYSQL,
        "container": "dbmanager-mysql",
        "image": "mysql:8",
        "port": 3307,
        "internal_port": 3306,
        "env": {
            "MYSQL_ROOT_PASSWORD": "root_password",
            "MYSQL_DATABASE": DEV_DATABASE,
            "MYSQL_USER": DEV_USER,
            "MYSQL_PASSWORD": DEV_PASSWORD,
        },
    },
    "postgresql": {
        "type": DatabaseType.POSTGRESQL,
        "container": "dbmanager-postgres",
        "image": "postgres:16-alpine",
        "port": 5433,
        "internal_port": 5432,
        "env": {
            "POSTGRES_DB": DEV_DATABASE,
            "POSTGRES_USER": DEV_USER,
            "POSTGRES_PASSWORD": DEV_PASSWORD,
        },
    },
}

_ID_COLUMN = {
    DatabaseType.MYSQL: "INT AUTO_INCREMENT PRIMARY KEY",
    DatabaseType.POSTGRESQL: "SERIAL PRIMARY KEY",
    DatabaseType.SQLITE: "INTEGER PRIMARY KEY AUTOINCREMENT",
}


def run(cmd: list[str], *, check: bool = True, **kwargs) -> subprocess.CompletedProcess[str]:
    print("$", " ".join(cmd))
    return subprocess.run(cmd, check=check, text=True, **kwargs)


def container_exists(name: str) -> bool:
    result = subprocess.run(
        ["docker", "ps", "-a", "--filter", f"name={name}", "--format", "{{.ID}}"],
        text=True,
        capture_output=True,
    )
    return bool(result.stdout.strip())


def start_container(engine: str, name: str, port: int) -> None:
    settings = ENGINES[engine]
    if container_exists(name):
        print(f"Container '{name}' already exists. Reusing it.")
        run(["docker", "start", name], check=False)
        return
    cmd = ["docker", "run", "-d", "--name", name]
    for key, value in settings["env"].items():
        cmd.extend(["-e", f"{key}={value}"])
    cmd.extend(["-p", f"{port}:{settings['internal_port']}", settings["image"]])
    run(cmd)


def seed_statements(db_type: DatabaseType) -> list[str]:
    id_column = _ID_COLUMN[db_type]
    return [
        f"""
        CREATE TABLE IF NOT EXISTS users (
            id {id_column},
            name VARCHAR(255) NOT NULL,
            email VARCHAR(255) UNIQUE
        )
        """,
        f"""
        CREATE TABLE IF NOT EXISTS products (
            id {id_column},
            name VARCHAR(255) NOT NULL,
            price DECIMAL(10,2),
            category VARCHAR(100)
        )
        """,
        "DELETE FROM users",
        "DELETE FROM products",
        """
        INSERT INTO users (name, email) VALUES
            ('Alice', 'alice@example.com'),
            ('Bob', 'bob@example.com'),
            ('Charlie', 'charlie@example.com')
        """,
        """
        INSERT INTO products (name, price, category) VALUES
            ('Laptop', 999.99, 'Electronics'),
            ('Book', 19.99, 'Education'),
            ('Coffee', 4.50, 'Food')
        """,
    ]


async def wait_and_seed(profile: ConnectionProfileConfig, password: str, retries: int = 30, delay: float = 2.0) -> None:
    proxy = DatabaseProxyFactory.create_from_profile(profile, password=password)
    for attempt in range(retries):
        try:
            await proxy.connect()
            break
        except DatabaseError as exc:
            if attempt == retries - 1:
                raise
            print(f"Waiting for database ({exc})")
            await asyncio.sleep(delay)
    try:
        for statement in seed_statements(profile.type):
            result = await proxy.query(statement)
            if not result.success:
                raise DatabaseError(f"Seeding failed: {result.error}")
    finally:
        await proxy.disconnect()


def update_config(profile: ConnectionProfileConfig) -> None:
    try:
        config = load_config()
    except Exception:
        config = AppConfig()
    save_config(config.with_profile(profile).with_active_profile(profile.name))
    print(f"Saved '{profile.name}' profile to {CONFIG_FILE}.")


def build_profile(args: argparse.Namespace) -> ConnectionProfileConfig:
    if args.engine == "sqlite":
        return ConnectionProfileConfig(
            name=PROFILE_NAME.format(engine="SQLite"),
            type=DatabaseType.SQLITE,
            database=str(Path(args.sqlite_path).expanduser().resolve()),
        )
    settings = ENGINES[args.engine]
    return ConnectionProfileConfig(
        name=PROFILE_NAME.format(engine="MySQL" if args.engine == "mysql" else "PostgreSQL"),
        type=settings["type"],
        host="localhost",
        port=args.port or settings["port"],
        database=DEV_DATABASE,
        username=DEV_USER,
    )


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("engine", choices=("mysql", "postgresql", "sqlite"), help="Database engine to prepare")
    parser.add_argument("--container", help="Docker container name")
    parser.add_argument("--port", type=int, help="Host port to expose the server on")
    parser.add_argument("--sqlite-path", default="sample.db", help="SQLite file to create and seed")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv or sys.argv[1:])
    profile = build_profile(args)
    try:
        if args.engine != "sqlite":
            start_container(args.engine, args.container or ENGINES[args.engine]["container"], profile.port)
        asyncio.run(wait_and_seed(profile, "" if args.engine == "sqlite" else DEV_PASSWORD))
    except FileNotFoundError:
        print("Docker is not installed or not on PATH.")
        return 1
    except DatabaseError as exc:
        print(f"Sample database setup failed: {exc}")
        return 1
    update_config(profile)
    print(f"Sample database is ready. Connect using the '{profile.name}' profile.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
