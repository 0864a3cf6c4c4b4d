from typing import List, Dict, Any, Optional, Generic, TypeVar
from pydantic import BaseModel, Field, field_validator
from datetime import date, datetime
from decimal import Decimal
from enum import Enum

T = TypeVar('T')


def to_local_date(value: Any) -> Any:
    """
    Reduce a stored date or timestamp to a calendar date in local time.

    Timestamps written by other clients carry a time part (often UTC); day
    arithmetic only ever looks at the local calendar day.
    """
    if value is None or value == "":
        return None
    if isinstance(value, str):
        text = value.strip()
        if len(text) == 10:
            return date.fromisoformat(text)
        value = datetime.fromisoformat(text.replace("Z", "+00:00"))
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone()
        return value.date()
    return value


def to_timestamp(value: Any) -> Any:
    """Accept date-only strings where a timestamp is expected."""
    if isinstance(value, str) and len(value.strip()) == 10:
        return f"{value.strip()}T00:00:00"
    if value == "":
        return None
    return value

# =============================================================================
# API ENVELOPE
# =============================================================================

class ApiMeta(BaseModel):
    version: int = 1
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    pagination: Optional[Dict[str, Any]] = None

class ApiError(BaseModel):
    code: str
    message: str
    target: Optional[str] = None # Field name or entity ID
    details: Optional[Any] = None

class ApiResponse(BaseModel, Generic[T]):
    data: Optional[T] = None
    meta: ApiMeta = Field(default_factory=ApiMeta)
    errors: Optional[List[ApiError]] = None

# =============================================================================
# ENUMS
# =============================================================================

class NoticeStatus(str, Enum):
    OPEN = "Open"
    IN_PROGRESS = "In Progress"
    WAITING_ON_CLIENT = "Waiting on Client"
    AWAITING_IRS_RESPONSE = "Awaiting IRS Response"
    ESCALATED = "Escalated"
    CLOSED = "Closed"
    RESOLVED = "Resolved" # Legacy/manual label, treated as terminal

TERMINAL_STATUSES = {NoticeStatus.CLOSED.value, NoticeStatus.RESOLVED.value}

def is_terminal_status(status: Optional[str]) -> bool:
    return status in TERMINAL_STATUSES

class BillingState(str, Enum):
    BILLED = "Billed"
    UNBILLED = "Unbilled"

# =============================================================================
# CANONICAL ENTITIES
# =============================================================================

class Client(BaseModel):
    id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    notes: Optional[str] = None

class Notice(BaseModel):
    id: str
    client_id: Optional[str] = None
    notice_number: Optional[str] = None
    notice_issue: Optional[str] = None
    form_number: Optional[str] = None
    tax_period: Optional[str] = None
    date_received: Optional[date] = None
    days_to_respond: Optional[int] = None
    status: str = NoticeStatus.OPEN.value

    # Derived cache fields, never authoritative
    escalated: bool = False
    days_remaining: Optional[int] = None
    response_deadline: Optional[date] = None

    poa_on_file: bool = False
    date_completed: Optional[datetime] = None
    last_auto_update: Optional[datetime] = None

    @field_validator("date_received", "response_deadline", mode="before")
    @classmethod
    def coerce_dates(cls, v):
        return to_local_date(v)

    @field_validator("date_completed", "last_auto_update", mode="before")
    @classmethod
    def coerce_timestamps(cls, v):
        return to_timestamp(v)

    @field_validator("status", mode="before")
    @classmethod
    def coerce_status(cls, v):
        # Missing status reads as a fresh, non-terminal notice
        return v or NoticeStatus.OPEN.value

    @field_validator("escalated", "poa_on_file", mode="before")
    @classmethod
    def coerce_flags(cls, v):
        return bool(v)

class Call(BaseModel):
    id: str
    notice_id: str
    client_id: Optional[str] = None
    date: datetime
    response_method: Optional[str] = None
    duration_minutes: float = 0
    hourly_rate: Optional[Decimal] = None
    billable: bool = True
    billing: BillingState = BillingState.UNBILLED
    outcome: Optional[str] = None
    follow_up_date: Optional[date] = None
    notes: Optional[str] = None

    @field_validator("date", mode="before")
    @classmethod
    def coerce_date(cls, v):
        return to_timestamp(v)

    @field_validator("date")
    @classmethod
    def local_naive_date(cls, v):
        # Mixed aware/naive timestamps must stay comparable for ordering
        return v.astimezone().replace(tzinfo=None) if v.tzinfo else v

    @field_validator("follow_up_date", mode="before")
    @classmethod
    def coerce_follow_up(cls, v):
        return to_local_date(v)

    @field_validator("duration_minutes", mode="before")
    @classmethod
    def coerce_duration(cls, v):
        return 0 if v is None else v

    @field_validator("billable", mode="before")
    @classmethod
    def coerce_billable(cls, v):
        return bool(v)

    @field_validator("billing", mode="before")
    @classmethod
    def coerce_billing(cls, v):
        return v or BillingState.UNBILLED.value

class POARecord(BaseModel):
    id: str
    client_id: str
    form: str = ""
    period_start: str = ""
    period_end: str = ""
    electronic_copy: bool = False
    caf_verified: bool = False
    paper_copy: bool = False
    date_received: Optional[date] = None

    @field_validator("form", "period_start", "period_end", mode="before")
    @classmethod
    def coerce_text(cls, v):
        return "" if v is None else str(v)

    @field_validator("date_received", mode="before")
    @classmethod
    def coerce_received(cls, v):
        return to_local_date(v)

    @field_validator("electronic_copy", "caf_verified", "paper_copy", mode="before")
    @classmethod
    def coerce_flags(cls, v):
        return bool(v)

# =============================================================================
# COMPUTED RESULTS
# =============================================================================

class DerivedNoticeFields(BaseModel):
    status: str
    escalated: bool
    days_remaining: Optional[int] = None
    response_deadline: Optional[date] = None

    def to_update(self) -> Dict[str, Any]:
        """Column values for a notice update."""
        return {
            "status": self.status,
            "escalated": self.escalated,
            "days_remaining": self.days_remaining,
            "response_deadline": self.response_deadline.isoformat() if self.response_deadline else None,
        }

class POACheckResult(BaseModel):
    has_valid_poa: bool
    matching_poa: Optional[POARecord] = None
    reason: Optional[str] = None

class BillingLine(BaseModel):
    call: Call
    billable_amount: Decimal

class ClientBilling(BaseModel):
    client: Client
    lines: List[BillingLine]
    total_amount: Decimal
    billable_hours: float

class BillingTotals(BaseModel):
    unbilled: Decimal
    billed: Decimal
    total: Decimal

class DashboardStats(BaseModel):
    total_clients: int
    active_notices: int
    escalated_notices: int
    due_this_week: int
    missing_poa: int
    closed_this_month: int
    total_responses: int

# =============================================================================
# BATCH OPERATIONS
# =============================================================================

class ReconcileError(BaseModel):
    notice_id: str
    error: str

class ReconcileReport(BaseModel):
    checked: int = 0
    updated: int = 0
    skipped: int = 0
    errors: List[ReconcileError] = []

class CleanupReport(BaseModel):
    total: int = 0
    fixed: int = 0
    errors: List[str] = []

class MarkBilledRequest(BaseModel):
    call_ids: List[str] = Field(..., min_length=1)
