"""
Unified NoSQL adapter for document-based operations.
Stores JSON documents in SQLite tables and exposes single-document atomic
primitives (field increment, array union, compare-and-set).
"""

import sqlite3
import json
import logging
import uuid
from typing import Dict, Any, List, Optional, Tuple, Callable
from datetime import datetime
from .schemas import DOCUMENT_VALIDATORS

logger = logging.getLogger(__name__)


# collection name -> primary key column
COLLECTION_KEYS = {
    'users': 'user_id',
    'documents': 'doc_id',
    'accounts': 'account_id',
}


class CeilingExceededError(ValueError):
    """An Increment would push a field above its ceiling; nothing was written."""

    def __init__(self, current: int, delta: int, ceiling: int):
        super().__init__(f"{current} + {delta} exceeds ceiling {ceiling}")
        self.current = current
        self.delta = delta
        self.ceiling = ceiling


class Increment:
    """Field transform: add `delta` to a numeric field, optionally floored and capped."""

    def __init__(self, delta: int, floor: Optional[int] = None, ceiling: Optional[int] = None):
        self.delta = delta
        self.floor = floor
        self.ceiling = ceiling

    def apply(self, current: Any) -> int:
        current = current or 0
        value = current + self.delta
        if self.ceiling is not None and self.delta > 0 and value > self.ceiling:
            raise CeilingExceededError(current, self.delta, self.ceiling)
        if self.floor is not None:
            value = max(self.floor, value)
        return value

    def __repr__(self) -> str:
        return f"Increment({self.delta}, floor={self.floor}, ceiling={self.ceiling})"


class ArrayUnion:
    """Field transform: append items that are not already present."""

    def __init__(self, *items: Any):
        self.items = list(items)

    def apply(self, current: Any) -> List[Any]:
        values = list(current or [])
        for item in self.items:
            if item not in values:
                values.append(item)
        return values

    def __repr__(self) -> str:
        return f"ArrayUnion({self.items!r})"


def _apply_fields(document: Dict[str, Any], fields: Dict[str, Any]) -> Dict[str, Any]:
    """Merge `fields` into a copy of `document`, resolving transforms."""
    merged = dict(document)
    for key, value in fields.items():
        if isinstance(value, (Increment, ArrayUnion)):
            merged[key] = value.apply(merged.get(key))
        else:
            merged[key] = value
    return merged


class NoSQLAdapter:
    """Unified adapter for document-based database operations"""

    def __init__(self, db_path: str = "wallet.db", timeout: float = 10.0):
        self.db_path = db_path
        self.timeout = timeout

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection with JSON support"""
        # isolation_level=None: transactions are opened explicitly
        conn = sqlite3.connect(self.db_path, timeout=self.timeout, isolation_level=None)
        conn.row_factory = sqlite3.Row
        return conn

    def _table(self, collection: str) -> Tuple[str, str]:
        if collection not in COLLECTION_KEYS:
            raise ValueError(f"Unknown collection: {collection}")
        return f"{collection}_docs", COLLECTION_KEYS[collection]

    def _validate_document(self, collection: str, document: Dict[str, Any]) -> None:
        """Validate document against schema"""
        if collection in DOCUMENT_VALIDATORS:
            try:
                DOCUMENT_VALIDATORS[collection](document)
            except Exception as e:
                logger.error(f"Document validation failed for {collection}: {e}")
                raise ValueError(f"Document validation failed: {e}")

    def _serialize_document(self, document: Dict[str, Any]) -> str:
        """Serialize document to JSON string"""
        def json_serializer(obj):
            if isinstance(obj, datetime):
                return obj.isoformat()
            raise TypeError(f"Object of type {type(obj)} is not JSON serializable")

        return json.dumps(document, default=json_serializer)

    def _deserialize_document(self, json_str: str) -> Dict[str, Any]:
        """Deserialize JSON string to document"""
        return json.loads(json_str)

    def init_collections(self) -> None:
        """Initialize document collections (tables)"""
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            for collection, key in COLLECTION_KEYS.items():
                cursor.execute(f'''
                    CREATE TABLE IF NOT EXISTS {collection}_docs (
                        {key} TEXT PRIMARY KEY,
                        document TEXT NOT NULL,
                        version INTEGER NOT NULL DEFAULT 1,
                        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    )
                ''')

            self._create_basic_indexes(cursor)
            logger.info("NoSQL collections initialized successfully")

        except Exception as e:
            logger.error(f"Error initializing collections: {e}")
            raise
        finally:
            conn.close()

    def _create_basic_indexes(self, cursor: sqlite3.Cursor) -> None:
        """Create basic indexes for document queries"""
        cursor.execute('''
            CREATE INDEX IF NOT EXISTS idx_documents_user_id
            ON documents_docs(json_extract(document, '$.userId'))
        ''')
        cursor.execute('''
            CREATE INDEX IF NOT EXISTS idx_documents_uploaded_at
            ON documents_docs(json_extract(document, '$.uploadedAt'))
        ''')
        cursor.execute('''
            CREATE INDEX IF NOT EXISTS idx_accounts_email
            ON accounts_docs(json_extract(document, '$.email'))
        ''')

    def create_document(self, collection: str, document: Dict[str, Any], doc_id: Optional[str] = None) -> str:
        """Create a new document in the collection, generating an id when none is given"""
        table, key = self._table(collection)
        doc_id = doc_id or uuid.uuid4().hex
        self._validate_document(collection, document)

        conn = self._get_connection()
        try:
            conn.execute(
                f'INSERT INTO {table} ({key}, document) VALUES (?, ?)',
                (doc_id, self._serialize_document(document)),
            )
            logger.info(f"Created document in {collection} with ID: {doc_id}")
            return doc_id

        except Exception as e:
            logger.error(f"Error creating document in {collection}: {e}")
            raise
        finally:
            conn.close()

    def set_document(self, collection: str, doc_id: str, document: Dict[str, Any]) -> None:
        """Create or overwrite a whole document"""
        table, key = self._table(collection)
        self._validate_document(collection, document)

        conn = self._get_connection()
        try:
            conn.execute(f'''
                INSERT INTO {table} ({key}, document) VALUES (?, ?)
                ON CONFLICT({key}) DO UPDATE SET
                    document = excluded.document,
                    version = version + 1,
                    updated_at = CURRENT_TIMESTAMP
            ''', (doc_id, self._serialize_document(document)))
            logger.info(f"Set document in {collection} with ID: {doc_id}")

        except Exception as e:
            logger.error(f"Error setting document in {collection}: {e}")
            raise
        finally:
            conn.close()

    def get_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Get a document by ID"""
        found = self.get_document_with_version(collection, doc_id)
        return found[0] if found else None

    def get_document_with_version(self, collection: str, doc_id: str) -> Optional[Tuple[Dict[str, Any], int]]:
        """Get a document and its version counter by ID"""
        table, key = self._table(collection)
        conn = self._get_connection()
        try:
            row = conn.execute(
                f'SELECT document, version FROM {table} WHERE {key} = ?', (doc_id,)
            ).fetchone()
            if row:
                return self._deserialize_document(row['document']), row['version']
            return None

        except Exception as e:
            logger.error(f"Error getting document from {collection}: {e}")
            raise
        finally:
            conn.close()

    def _mutate(
        self,
        collection: str,
        doc_id: str,
        mutator: Callable[[Dict[str, Any]], Dict[str, Any]],
    ) -> Optional[Dict[str, Any]]:
        """Read-modify-write one document while holding the write lock."""
        table, key = self._table(collection)
        conn = self._get_connection()
        try:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                f'SELECT document FROM {table} WHERE {key} = ?', (doc_id,)
            ).fetchone()
            if row is None:
                conn.execute("ROLLBACK")
                return None

            updated = mutator(self._deserialize_document(row['document']))
            self._validate_document(collection, updated)
            conn.execute(f'''
                UPDATE {table}
                SET document = ?, version = version + 1, updated_at = CURRENT_TIMESTAMP
                WHERE {key} = ?
            ''', (self._serialize_document(updated), doc_id))
            conn.execute("COMMIT")
            return updated

        except Exception:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        finally:
            conn.close()

    def update_fields(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> bool:
        """Atomically merge fields (plain values, Increment, ArrayUnion) into a document"""
        try:
            updated = self._mutate(collection, doc_id, lambda doc: _apply_fields(doc, fields))
        except CeilingExceededError:
            raise
        except Exception as e:
            logger.error(f"Error updating document in {collection}: {e}")
            raise

        if updated is None:
            logger.warning(f"No document found to update in {collection} with ID: {doc_id}")
            return False
        logger.info(f"Updated document in {collection} with ID: {doc_id}")
        return True

    def transform_document(
        self,
        collection: str,
        doc_id: str,
        mutator: Callable[[Dict[str, Any]], Dict[str, Any]],
    ) -> Optional[Dict[str, Any]]:
        """Atomically replace a document with mutator(document); returns the result or None if missing.

        The mutator runs under the write lock and may raise to abort without writing.
        """
        updated = self._mutate(collection, doc_id, mutator)
        if updated is None:
            logger.warning(f"No document found to transform in {collection} with ID: {doc_id}")
        else:
            logger.info(f"Transformed document in {collection} with ID: {doc_id}")
        return updated

    def increment_field(
        self,
        collection: str,
        doc_id: str,
        field: str,
        delta: int,
        floor: Optional[int] = None,
        extra_fields: Optional[Dict[str, Any]] = None,
    ) -> Optional[int]:
        """Atomically add delta to a numeric field; returns the new value or None if missing"""
        fields = dict(extra_fields or {})
        fields[field] = Increment(delta, floor=floor)
        updated = self._mutate(collection, doc_id, lambda doc: _apply_fields(doc, fields))
        if updated is None:
            logger.warning(f"No document found to increment in {collection} with ID: {doc_id}")
            return None
        return updated[field]

    def array_union(self, collection: str, doc_id: str, field: str, *items: Any) -> bool:
        """Atomically append items not already present in an array field"""
        return self.update_fields(collection, doc_id, {field: ArrayUnion(*items)})

    def compare_and_set(
        self,
        collection: str,
        doc_id: str,
        expected_version: int,
        fields: Dict[str, Any],
    ) -> bool:
        """Merge fields only if the document is still at expected_version"""
        table, key = self._table(collection)
        conn = self._get_connection()
        try:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                f'SELECT document, version FROM {table} WHERE {key} = ?', (doc_id,)
            ).fetchone()
            if row is None or row['version'] != expected_version:
                conn.execute("ROLLBACK")
                logger.info(f"Version conflict on {collection}/{doc_id} (expected {expected_version})")
                return False

            updated = _apply_fields(self._deserialize_document(row['document']), fields)
            self._validate_document(collection, updated)
            conn.execute(f'''
                UPDATE {table}
                SET document = ?, version = version + 1, updated_at = CURRENT_TIMESTAMP
                WHERE {key} = ? AND version = ?
            ''', (self._serialize_document(updated), doc_id, expected_version))
            conn.execute("COMMIT")
            return True

        except Exception as e:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            logger.error(f"Error in compare-and-set on {collection}: {e}")
            raise
        finally:
            conn.close()

    def delete_document(self, collection: str, doc_id: str) -> bool:
        """Delete a document by ID"""
        table, key = self._table(collection)
        conn = self._get_connection()
        try:
            cursor = conn.execute(f'DELETE FROM {table} WHERE {key} = ?', (doc_id,))
            success = cursor.rowcount > 0

            if success:
                logger.info(f"Deleted document from {collection} with ID: {doc_id}")
            else:
                logger.warning(f"No document found to delete in {collection} with ID: {doc_id}")

            return success

        except Exception as e:
            logger.error(f"Error deleting document from {collection}: {e}")
            raise
        finally:
            conn.close()

    def _where(self, collection: str, query: Optional[Dict[str, Any]]) -> Tuple[str, List[Any]]:
        _, key = self._table(collection)
        where_clauses = []
        params: List[Any] = []
        for field, value in (query or {}).items():
            if field == '_id':
                where_clauses.append(f"{key} = ?")
                params.append(value)
            else:
                # JSON path query
                where_clauses.append("json_extract(document, ?) = ?")
                params.extend([f"$.{field}", value])
        if not where_clauses:
            return "", params
        return " WHERE " + " AND ".join(where_clauses), params

    def query_documents(
        self,
        collection: str,
        query: Dict[str, Any],
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: int = 100,
        offset: int = 0,
        include_ids: bool = False,
    ) -> List[Dict[str, Any]]:
        """Query documents with equality filters and optional ordering on one field"""
        table, key = self._table(collection)
        conn = self._get_connection()
        try:
            where, params = self._where(collection, query)
            sql = f"SELECT {key} AS _id, document FROM {table}{where}"
            if order_by:
                sql += " ORDER BY json_extract(document, ?) " + ("DESC" if descending else "ASC")
                params.append(f"$.{order_by}")
            sql += " LIMIT ? OFFSET ?"
            params.extend([limit, offset])

            documents = []
            for row in conn.execute(sql, params).fetchall():
                document = self._deserialize_document(row['document'])
                if include_ids:
                    document['_id'] = row['_id']
                documents.append(document)
            return documents

        except Exception as e:
            logger.error(f"Error querying documents from {collection}: {e}")
            raise
        finally:
            conn.close()

    def count_documents(self, collection: str, query: Optional[Dict[str, Any]] = None) -> int:
        """Count documents matching query"""
        table, _ = self._table(collection)
        conn = self._get_connection()
        try:
            where, params = self._where(collection, query)
            row = conn.execute(f"SELECT COUNT(*) AS count FROM {table}{where}", params).fetchone()
            return row['count']

        except Exception as e:
            logger.error(f"Error counting documents in {collection}: {e}")
            raise
        finally:
            conn.close()
