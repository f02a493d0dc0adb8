"""
Record store abstraction for conversation retention data.

The lifecycle engine only talks to a RecordStore; the SQLAlchemy
implementation is the production backend.
"""

from companion_lifecycle.store.base import Recipient, RecordStore
from companion_lifecycle.store.sqlalchemy_store import SqlAlchemyRecordStore

__all__ = [
    "RecordStore",
    "Recipient",
    "SqlAlchemyRecordStore",
]
