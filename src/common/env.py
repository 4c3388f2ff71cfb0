"""Environment configuration interface for datadesk.

This module provides a clean interface for accessing environment variables,
centralizing all environment variable access in one place.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

from common.constants import DEFAULT_BATCH_SIZE, DEFAULT_CONNECTION_NAME, DEFAULT_DATABASE_PATH

# Load environment variables from .env file if it exists
load_dotenv()


class Environment:
    """Interface for accessing environment configuration."""

    @staticmethod
    def database_type() -> str:
        """Get the database type (sqlite or postgresql).

        Returns:
            Database type, defaults to 'sqlite'
        """
        return os.getenv("DATABASE_TYPE", "sqlite")

    @staticmethod
    def database_path() -> Path:
        """Get the SQLite database file path.

        Returns:
            Path to SQLite database file, defaults to ./data/my_database.db
        """
        return Path(os.getenv("DATABASE_PATH", str(DEFAULT_DATABASE_PATH)))

    @staticmethod
    def connection_name() -> str:
        """Get the name the main connection is registered under.

        Returns:
            Connection name, defaults to 'default_connection'
        """
        return os.getenv("CONNECTION_NAME", DEFAULT_CONNECTION_NAME)

    @staticmethod
    def batch_size() -> int:
        """Get the number of rows committed per batch in batch inserts.

        Returns:
            Batch size, defaults to 100
        """
        return int(os.getenv("BATCH_SIZE", str(DEFAULT_BATCH_SIZE)))

    @staticmethod
    def postgres_host() -> str:
        return os.getenv("POSTGRES_HOST", "localhost")

    @staticmethod
    def postgres_port() -> int:
        return int(os.getenv("POSTGRES_PORT", "5432"))

    @staticmethod
    def postgres_database() -> str:
        return os.getenv("POSTGRES_DB", "datadesk")

    @staticmethod
    def postgres_user() -> str:
        return os.getenv("POSTGRES_USER", "datadesk_user")

    @staticmethod
    def postgres_password() -> str:
        return os.getenv("POSTGRES_PASSWORD", "")

    @staticmethod
    def postgres_pool_size() -> int:
        """Get PostgreSQL connection pool size.

        Returns:
            Pool size, defaults to 5
        """
        return int(os.getenv("POSTGRES_POOL_SIZE", "5"))

    @staticmethod
    def postgres_pool_max_overflow() -> int:
        """Get PostgreSQL connection pool max overflow.

        Returns:
            Max overflow, defaults to 10
        """
        return int(os.getenv("POSTGRES_POOL_MAX_OVERFLOW", "10"))


# Singleton instance for convenient access
env = Environment()
