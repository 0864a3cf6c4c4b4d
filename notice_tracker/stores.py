"""
Store Wrappers

Thin collection access over the hosted document store. Every collection is
reached through get/list/create/update/delete keyed by collection name and
document id; the typed stores below add the handful of queries the engines
need and convert rows into entity models.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from notice_tracker.config import CALLS_TABLE, CLIENTS_TABLE, NOTICES_TABLE, POA_TABLE
from notice_tracker.schemas import (
    BillingState, Call, Client, Notice, POARecord, is_terminal_status
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class StoreError(Exception):
    """Raised when the hosted store cannot serve a read or write."""

    def __init__(self, collection: str, operation: str, message: str):
        self.collection = collection
        self.operation = operation
        super().__init__(f"{operation} on {collection} failed: {message}")


class DocumentStore:
    """Generic key-value document access over a Supabase client."""

    def __init__(self, supabase):
        if supabase is None:
            raise ValueError("A store client is required")
        self.supabase = supabase

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        try:
            result = self.supabase.table(collection)\
                .select("*")\
                .eq("id", doc_id)\
                .limit(1)\
                .execute()
        except Exception as e:
            raise StoreError(collection, "get", str(e)) from e
        return result.data[0] if result.data else None

    def list(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        try:
            query = self.supabase.table(collection).select("*")
            for column, value in (filters or {}).items():
                query = query.eq(column, value)
            result = query.execute()
        except Exception as e:
            raise StoreError(collection, "list", str(e)) from e
        return result.data or []

    def create(self, collection: str, data: Dict[str, Any]) -> Dict[str, Any]:
        try:
            result = self.supabase.table(collection).insert(data).execute()
        except Exception as e:
            raise StoreError(collection, "create", str(e)) from e
        return result.data[0] if result.data else data

    def update(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        try:
            self.supabase.table(collection).update(data).eq("id", doc_id).execute()
        except Exception as e:
            raise StoreError(collection, "update", str(e)) from e

    def delete(self, collection: str, doc_id: str) -> None:
        try:
            self.supabase.table(collection).delete().eq("id", doc_id).execute()
        except Exception as e:
            raise StoreError(collection, "delete", str(e)) from e


def parse_row(model: Type[M], collection: str, row: Optional[Dict[str, Any]]) -> Optional[M]:
    """Validate one stored row. Rows that cannot be read are logged and dropped."""
    if not row:
        return None
    try:
        return model.model_validate(row)
    except ValidationError as e:
        logger.warning(f"Skipping unreadable {collection} row {row.get('id')!r}: {e.error_count()} error(s)")
        return None


def parse_rows(model: Type[M], collection: str, rows: List[Dict[str, Any]]) -> List[M]:
    parsed = (parse_row(model, collection, row) for row in rows)
    return [item for item in parsed if item is not None]


class ClientStore:
    def __init__(self, documents: DocumentStore):
        self.documents = documents

    def get_by_id(self, client_id: str) -> Optional[Client]:
        row = self.documents.get(CLIENTS_TABLE, client_id)
        return parse_row(Client, CLIENTS_TABLE, row)

    def list(self) -> List[Client]:
        return parse_rows(Client, CLIENTS_TABLE, self.documents.list(CLIENTS_TABLE))


class NoticeStore:
    def __init__(self, documents: DocumentStore):
        self.documents = documents

    def get_by_id(self, notice_id: str) -> Optional[Notice]:
        row = self.documents.get(NOTICES_TABLE, notice_id)
        return parse_row(Notice, NOTICES_TABLE, row)

    def list(self) -> List[Notice]:
        return parse_rows(Notice, NOTICES_TABLE, self.documents.list(NOTICES_TABLE))

    def list_by_client(self, client_id: str) -> List[Notice]:
        rows = self.documents.list(NOTICES_TABLE, {"client_id": client_id})
        return parse_rows(Notice, NOTICES_TABLE, rows)

    def list_active(self) -> List[Notice]:
        """Notices whose persisted status is not terminal."""
        return [n for n in self.list() if not is_terminal_status(n.status)]

    def update(self, notice_id: str, fields: Dict[str, Any]) -> None:
        self.documents.update(NOTICES_TABLE, notice_id, fields)


class CallStore:
    def __init__(self, documents: DocumentStore):
        self.documents = documents

    def list(self) -> List[Call]:
        return parse_rows(Call, CALLS_TABLE, self.documents.list(CALLS_TABLE))

    def list_by_notice(self, notice_id: str) -> List[Call]:
        rows = self.documents.list(CALLS_TABLE, {"notice_id": notice_id})
        return parse_rows(Call, CALLS_TABLE, rows)

    def list_by_client(self, client_id: str) -> List[Call]:
        rows = self.documents.list(CALLS_TABLE, {"client_id": client_id})
        return parse_rows(Call, CALLS_TABLE, rows)

    def mark_as_billed(self, call_ids: List[str]) -> int:
        """Flip the billing state of the given calls. Returns the number written."""
        now = datetime.utcnow().isoformat()
        for call_id in call_ids:
            self.documents.update(CALLS_TABLE, call_id, {
                "billing": BillingState.BILLED.value,
                "updated_at": now,
            })
        logger.info(f"Marked {len(call_ids)} call(s) as billed")
        return len(call_ids)


class POAStore:
    def __init__(self, documents: DocumentStore):
        self.documents = documents

    def list(self) -> List[POARecord]:
        return parse_rows(POARecord, POA_TABLE, self.documents.list(POA_TABLE))

    def list_by_client(self, client_id: str) -> List[POARecord]:
        rows = self.documents.list(POA_TABLE, {"client_id": client_id})
        return parse_rows(POARecord, POA_TABLE, rows)
