import datetime as dt
from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel


IssueType = Literal["amount_mismatch", "status_mismatch", "missing_payment", "duplicate_payment", "orphan_payment"]
Severity = Literal["low", "medium", "high"]


class ReconcileRequest(BaseModel):
    date: dt.date
    include_partial: bool = False
    auto_fix: bool = False


class ReconciliationIssue(BaseModel):
    type: IssueType
    severity: Severity
    payment_id: Optional[int] = None
    order_id: Optional[int] = None
    order_number: Optional[str] = None
    description: str
    expected_value: Optional[Union[int, float, str]] = None
    actual_value: Optional[Union[int, float, str]] = None
    suggestion: Optional[str] = None
    auto_fixable: bool = False


class ReconciliationSummary(BaseModel):
    total_payments_checked: int
    total_orders_checked: int
    total_issues_found: int
    issues_by_type: Dict[str, int]
    issues_by_severity: Dict[str, int]
    total_amount_discrepancy: float
    auto_fixed_count: int


class Reconciliation(BaseModel):
    date: dt.date
    summary: ReconciliationSummary
    issues: List[ReconciliationIssue]
    fixed_issues: List[ReconciliationIssue]


class ReconcileResponse(BaseModel):
    success: bool = True
    message: str
    reconciliation: Reconciliation
