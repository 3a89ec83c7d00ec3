import logging
from .nosql_adapter import NoSQLAdapter

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = "wallet.db"


def get_nosql_adapter(db_path: str = DEFAULT_DB_PATH, timeout: float = 10.0) -> NoSQLAdapter:
    """Return a document store adapter bound to db_path."""
    return NoSQLAdapter(db_path, timeout=timeout)


def init_db(db_path: str = DEFAULT_DB_PATH, timeout: float = 10.0) -> NoSQLAdapter:
    """Initialize the NoSQL collections and return the adapter."""
    adapter = get_nosql_adapter(db_path, timeout=timeout)
    adapter.init_collections()
    logger.info(f"Database initialized at {db_path}")
    return adapter
