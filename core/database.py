"""
ROBOSTORE Document Database Initialization

Initializes Firebase Admin SDK for Firestore access.
Falls back to an in-memory document store when credentials are unavailable.
"""

import logging
import operator
import uuid
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

import firebase_admin
from firebase_admin import credentials, firestore

from core.config import settings

# Configure logging
logger = logging.getLogger(__name__)

# Global Firestore client
_db: Optional[firestore.Client] = None
_mock_db: Optional["MockFirestoreClient"] = None
_mock_mode: bool = False


def init_firebase() -> bool:
    """
    Initialize Firebase Admin SDK.

    Returns:
        bool: True if connected successfully, False if running in memory mode.
    """
    global _db, _mock_mode

    # Already initialized?
    if _db is not None or _mock_mode:
        return not _mock_mode

    if settings.USE_IN_MEMORY_DB:
        logger.info("🧪 USE_IN_MEMORY_DB set - using in-memory document store")
        _mock_mode = True
        return False

    cred_path = Path(__file__).parent.parent / settings.FIREBASE_CREDENTIALS_PATH

    if not cred_path.exists():
        logger.warning(
            f"⚠️ Firebase credentials not found at '{cred_path}'. "
            "Running in MEMORY MODE - documents live only as long as the process."
        )
        _mock_mode = True
        return False

    try:
        cred = credentials.Certificate(str(cred_path))

        # Check if already initialized (happens during hot reload)
        if not firebase_admin._apps:
            firebase_admin.initialize_app(cred, {
                'projectId': settings.FIREBASE_PROJECT_ID,
            })
            logger.info(f"🔥 Firebase Admin SDK initialized for project: {settings.FIREBASE_PROJECT_ID}")

        _db = firestore.client()
        logger.info("✅ Connected to Firestore successfully!")
        return True

    except Exception as e:
        logger.error(f"❌ Failed to initialize Firebase: {e}")
        logger.warning("Running in MEMORY MODE - documents live only as long as the process.")
        _mock_mode = True
        return False


def is_mock_mode() -> bool:
    """Check if running in memory mode (no Firestore connection)."""
    return _mock_mode


# ============================================
# In-Memory Document Store
# ============================================

_OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
}


class MockDocument:
    """In-memory document. Serves as both document handle and snapshot."""

    def __init__(self, doc_id: str, collection: "MockCollection"):
        self.id = doc_id
        self._collection = collection
        self._data: dict = {}
        self.exists = False

    def set(self, data: dict, merge: bool = False):
        if merge:
            self._data.update(data)
        else:
            self._data = dict(data)
        self.exists = True

    def update(self, data: dict):
        if not self.exists:
            raise KeyError(f"No document to update: {self._collection.name}/{self.id}")
        self._data.update(data)

    def get(self) -> "MockDocument":
        return self

    def to_dict(self) -> Optional[dict]:
        return dict(self._data) if self.exists else None

    def delete(self):
        self._data = {}
        self.exists = False


class MockQuery:
    """Chainable filter over a collection's documents."""

    def __init__(
        self,
        collection: "MockCollection",
        filters: Tuple[Tuple[str, str, Any], ...] = (),
        max_results: Optional[int] = None,
    ):
        self._collection = collection
        self._filters = filters
        self._limit = max_results

    def where(self, field: str, op: str, value: Any) -> "MockQuery":
        if op not in _OPERATORS:
            raise ValueError(f"Unsupported operator: {op}")
        return MockQuery(self._collection, self._filters + ((field, op, value),), self._limit)

    def limit(self, count: int) -> "MockQuery":
        return MockQuery(self._collection, self._filters, count)

    def _matches(self, data: dict) -> bool:
        for field, op, value in self._filters:
            if field not in data:
                return False
            if not _OPERATORS[op](data[field], value):
                return False
        return True

    def stream(self) -> Iterator[MockDocument]:
        returned = 0
        for doc in list(self._collection._documents.values()):
            if self._limit is not None and returned >= self._limit:
                return
            if doc.exists and self._matches(doc._data):
                returned += 1
                yield doc

    def get(self) -> List[MockDocument]:
        return list(self.stream())


class MockCollection(MockQuery):
    """In-memory collection."""

    def __init__(self, name: str):
        self.name = name
        self._documents: Dict[str, MockDocument] = {}
        super().__init__(self)

    def document(self, doc_id: Optional[str] = None) -> MockDocument:
        if doc_id is None:
            doc_id = uuid.uuid4().hex
        if doc_id not in self._documents:
            self._documents[doc_id] = MockDocument(doc_id, self)
        return self._documents[doc_id]

    def add(self, data: dict):
        doc = self.document()
        doc.set(data)
        return (None, doc)


class MockFirestoreClient:
    """
    Firestore stand-in for development and tests.
    Stores data in memory.
    """

    def __init__(self):
        self._collections: Dict[str, MockCollection] = {}
        logger.info("🧪 MockFirestoreClient initialized (in-memory storage)")

    def collection(self, name: str) -> MockCollection:
        if name not in self._collections:
            self._collections[name] = MockCollection(name)
        return self._collections[name]


# ============================================
# Database Helper Functions
# ============================================

def get_database():
    """
    Get database client (Firestore or in-memory).
    Use this in your services to automatically handle memory mode.
    """
    global _mock_db

    if _db is None and not _mock_mode:
        init_firebase()

    if _mock_mode:
        if _mock_db is None:
            _mock_db = MockFirestoreClient()
        return _mock_db
    return _db


def reset_database():
    """Switch to a fresh, empty in-memory store."""
    global _mock_db, _mock_mode
    _mock_mode = True
    _mock_db = MockFirestoreClient()
