from src.storage.collections import Collections
from src.storage.document_store import DocumentStore, InMemoryDocumentStore, Query, QueryResult
from src.storage.persistence import PersistenceAdapter, deserialize_record, sanitize_record

__all__ = [
    "Collections", "DocumentStore", "InMemoryDocumentStore", "Query", "QueryResult",
    "PersistenceAdapter", "deserialize_record", "sanitize_record",
]
