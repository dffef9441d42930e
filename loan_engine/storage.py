"""
Storage Backend Module

Provides the abstract storage interface the host application persists loans
and asset balances through, and an in-memory implementation. All monetary
values are stored as Decimal strings.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Any
from datetime import datetime
import copy
import json
import threading
from dataclasses import dataclass
from contextlib import contextmanager


@dataclass
class StorageRecord:
    """Base class for all stored records"""
    id: str
    created_at: datetime
    updated_at: datetime
    
    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StorageRecord':
        """Create instance from dictionary"""
        data = dict(data)
        if 'created_at' in data and isinstance(data['created_at'], str):
            data['created_at'] = datetime.fromisoformat(data['created_at'])
        if 'updated_at' in data and isinstance(data['updated_at'], str):
            data['updated_at'] = datetime.fromisoformat(data['updated_at'])
        
        return cls(**data)


class StorageInterface(ABC):
    """Abstract interface for storage backends"""
    
    @abstractmethod
    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Save a record to storage"""
        pass
    
    @abstractmethod
    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Load a record from storage"""
        pass
    
    @abstractmethod
    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records from a table"""
        pass
    
    @abstractmethod
    def delete(self, table: str, record_id: str) -> bool:
        """Delete a record from storage"""
        pass
    
    @abstractmethod
    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters"""
        pass
    
    def begin_transaction(self) -> None:
        """Start a transaction (default no-op)"""
        pass
    
    def commit(self) -> None:
        """Commit current transaction (default no-op)"""
        pass
    
    def rollback(self) -> None:
        """Rollback current transaction (default no-op)"""
        pass
    
    @contextmanager
    def atomic(self):
        """Context manager for atomic operations"""
        self.begin_transaction()
        try:
            yield
            self.commit()
        except BaseException:
            self.rollback()
            raise


class InMemoryStorage(StorageInterface):
    """In-memory storage; a rollback restores the snapshot taken at begin"""
    
    def __init__(self):
        self._data: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = threading.RLock()
        self._snapshot: Optional[Dict[str, Dict[str, Dict[str, Any]]]] = None
    
    def _table(self, table: str) -> Dict[str, Dict[str, Any]]:
        return self._data.setdefault(table, {})
    
    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        with self._lock:
            # Deep copy to prevent external mutation
            self._table(table)[record_id] = json.loads(json.dumps(data, default=str))
    
    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            record = self._table(table).get(record_id)
            return copy.deepcopy(record) if record is not None else None
    
    def load_all(self, table: str) -> List[Dict[str, Any]]:
        with self._lock:
            return [copy.deepcopy(record) for record in self._table(table).values()]
    
    def delete(self, table: str, record_id: str) -> bool:
        with self._lock:
            return self._table(table).pop(record_id, None) is not None
    
    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        with self._lock:
            return [
                copy.deepcopy(record) for record in self._table(table).values()
                if all(record.get(key) == value for key, value in filters.items())
            ]
    
    def begin_transaction(self) -> None:
        self._lock.acquire()
        self._snapshot = copy.deepcopy(self._data)
    
    def commit(self) -> None:
        self._snapshot = None
        self._lock.release()
    
    def rollback(self) -> None:
        if self._snapshot is not None:
            self._data = self._snapshot
        self._snapshot = None
        self._lock.release()
