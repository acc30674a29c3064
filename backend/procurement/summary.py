"""
Dashboard figures and display formatting for purchase requests.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, List, Mapping, Optional

CURRENCY = "RWF"


def to_decimal(value: Any) -> Decimal:
    try:
        return Decimal(str(value)) if value not in (None, "") else Decimal(0)
    except InvalidOperation:
        return Decimal(0)


def parse_timestamp(value: Any) -> Optional[datetime]:
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def format_currency(amount: Any) -> str:
    """Whole units with thousands separators: `1,250,000 RWF`."""
    whole = to_decimal(amount).quantize(Decimal(1))
    return f"{whole:,.0f} {CURRENCY}"


def format_date(value: Any) -> str:
    ts = parse_timestamp(value)
    return ts.strftime("%d %b %Y") if ts else "N/A"


@dataclass
class Activity:
    request_id: Any
    request_title: str
    approver_username: str
    action: str
    approval_level: str
    created_at: Optional[datetime]
    comments: Optional[str] = None


@dataclass
class DashboardSummary:
    total_requests: int = 0
    pending_requests: int = 0
    approved_requests: int = 0
    rejected_requests: int = 0
    approved_amount: Decimal = Decimal(0)
    approved_this_month: int = 0
    approved_amount_this_month: Decimal = Decimal(0)
    recent_requests: List[Mapping[str, Any]] = field(default_factory=list)
    recent_activity: List[Activity] = field(default_factory=list)


def _approval_activities(requests: Iterable[Mapping[str, Any]]) -> List[Activity]:
    activities = []
    for request in requests:
        for approval in request.get("approvals") or []:
            activities.append(
                Activity(
                    request_id=request.get("id"),
                    request_title=str(request.get("title") or ""),
                    approver_username=approval.get("approver_username") or "Unknown",
                    action=approval.get("action_display") or approval.get("action") or "",
                    approval_level=approval.get("approval_level_display") or "N/A",
                    created_at=parse_timestamp(
                        approval.get("created_at") or approval.get("approved_at") or approval.get("rejected_at")
                    ),
                    comments=approval.get("comments"),
                )
            )
    return activities


def summarize(requests: List[Mapping[str, Any]], *, today: Optional[date] = None) -> DashboardSummary:
    """Counts, approved totals (overall and this month) and recent activity."""
    today = today or date.today()
    summary = DashboardSummary(total_requests=len(requests))
    for request in requests:
        status = request.get("status")
        if status == "pending":
            summary.pending_requests += 1
        elif status == "rejected":
            summary.rejected_requests += 1
        elif status == "approved":
            summary.approved_requests += 1
            amount = to_decimal(request.get("amount"))
            summary.approved_amount += amount
            updated = parse_timestamp(request.get("updated_at"))
            if updated and (updated.year, updated.month) == (today.year, today.month):
                summary.approved_this_month += 1
                summary.approved_amount_this_month += amount

    epoch = datetime.min
    summary.recent_requests = sorted(
        requests,
        key=lambda r: (parse_timestamp(r.get("created_at")) or epoch).replace(tzinfo=None),
        reverse=True,
    )[:3]
    activities = _approval_activities(requests)
    activities.sort(key=lambda a: (a.created_at or epoch).replace(tzinfo=None), reverse=True)
    summary.recent_activity = activities[:5]
    return summary
