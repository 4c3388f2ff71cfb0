"""Shared constants for the datadesk application.

For environment-based configuration (database settings, etc.), use the env module:
    from common.env import env
    db_type = env.database_type()
"""

from pathlib import Path

# Data directories
DATA_DIR = Path("./data")
DEFAULT_DATABASE_PATH = DATA_DIR / "my_database.db"

# Connection opened at startup; opening it also bootstraps the users table
DEFAULT_CONNECTION_NAME = "default_connection"

DEFAULT_BATCH_SIZE = 100

USERS_TABLE = "users"
TREE_TABLE = "tree_nodes"

# parent_id values that mark a tree node as a root
ROOT_PARENT_IDS: set[str] = {"", "0", "NULL"}
