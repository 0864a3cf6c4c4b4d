"""
Service wiring.

Everything that touches the store is constructed once here and handed to
the HTTP layer and the worker explicitly.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional

from fastapi import HTTPException, Request

from notice_tracker.config import Settings
from notice_tracker.escalation_service import EscalationOrchestrator
from notice_tracker.poa_checker import POASyncService
from notice_tracker.stores import (
    CallStore, ClientStore, DocumentStore, NoticeStore, POAStore
)

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    clients: ClientStore
    notices: NoticeStore
    calls: CallStore
    poa_records: POAStore
    orchestrator: EscalationOrchestrator
    poa_sync: POASyncService
    clock: Callable[[], date] = date.today


def build_services(supabase, settings: Settings, clock: Optional[Callable[[], date]] = None) -> Services:
    clock = clock or date.today
    documents = DocumentStore(supabase)
    notices = NoticeStore(documents)
    calls = CallStore(documents)
    poa_records = POAStore(documents)

    return Services(
        settings=settings,
        clients=ClientStore(documents),
        notices=notices,
        calls=calls,
        poa_records=poa_records,
        orchestrator=EscalationOrchestrator(notices, calls, settings=settings.escalation, clock=clock),
        poa_sync=POASyncService(notices, poa_records),
        clock=clock,
    )


def get_services(request: Request) -> Services:
    """FastAPI dependency returning the services built at start-up."""
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=503, detail="Store is not configured")
    return services
