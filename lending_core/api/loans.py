"""
Loan endpoints
"""

from typing import Optional
from fastapi import APIRouter, HTTPException, Depends, status

from .dependencies import get_lending_system, get_caller, to_http_exception
from .schemas import (
    TakeLoanRequest, TakeLoanForRequest, TakeInstallmentLoanRequest,
    RepayLoanRequest, AutoRepayRequest, UpdateRateRequest
)
from ..system import LendingSystem
from ..loans import FULL_REPAYMENT_AMOUNT
from ..exceptions import LendingError, LoanNotExist


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def take_loan(
    request: TakeLoanRequest,
    caller: str = Depends(get_caller),
    system: LendingSystem = Depends(get_lending_system)
):
    """Take a loan as the calling borrower"""
    try:
        loan_id = system.ledger.take_loan(
            caller, request.program_id, request.borrow_amount, request.duration_in_periods
        )
    except LendingError as e:
        raise to_http_exception(e)
    return {"loan_id": loan_id, "message": "Loan taken successfully"}


@router.post("/for", status_code=status.HTTP_201_CREATED)
async def take_loan_for(
    request: TakeLoanForRequest,
    caller: str = Depends(get_caller),
    system: LendingSystem = Depends(get_lending_system)
):
    """Take a loan on behalf of a borrower"""
    try:
        loan_id = system.ledger.take_loan_for(
            caller, request.borrower, request.program_id, request.borrow_amount,
            request.addon_amount, request.duration_in_periods
        )
    except LendingError as e:
        raise to_http_exception(e)
    return {"loan_id": loan_id, "message": "Loan taken successfully"}


@router.post("/installments", status_code=status.HTTP_201_CREATED)
async def take_installment_loan(
    request: TakeInstallmentLoanRequest,
    caller: str = Depends(get_caller),
    system: LendingSystem = Depends(get_lending_system)
):
    """Take an installment loan on behalf of a borrower"""
    try:
        first_id, count = system.ledger.take_installment_loan(
            caller, request.borrower, request.program_id,
            request.borrow_amounts, request.addon_amounts, request.durations
        )
    except LendingError as e:
        raise to_http_exception(e)
    return {"first_installment_id": first_id, "installment_count": count}


@router.post("/auto-repay")
async def auto_repay(
    request: AutoRepayRequest,
    caller: str = Depends(get_caller),
    system: LendingSystem = Depends(get_lending_system)
):
    """Repay several loans from their borrowers' funds"""
    try:
        system.ledger.auto_repay(caller, request.loan_ids, request.amounts)
    except LendingError as e:
        raise to_http_exception(e)
    return {"repaid": len(request.loan_ids)}


@router.get("/borrowers/{borrower}")
async def get_borrower_loans(borrower: str, system: LendingSystem = Depends(get_lending_system)):
    """List a borrower's loans in id order"""
    loans = system.ledger.get_borrower_loans(borrower)
    return {"borrower": borrower, "loans": [loan.to_dict() for loan in loans]}


@router.get("/{loan_id}")
async def get_loan(loan_id: int, system: LendingSystem = Depends(get_lending_system)):
    """Get the stored loan record"""
    loan = system.ledger.get_loan_state(loan_id)
    if loan is None:
        raise to_http_exception(LoanNotExist(loan_id))
    result = loan.to_dict()
    result["status"] = system.ledger.get_loan_status(loan_id).value
    return result


@router.get("/{loan_id}/preview")
async def get_loan_preview(
    loan_id: int,
    timestamp: Optional[int] = None,
    system: LendingSystem = Depends(get_lending_system)
):
    """Preview balances of a loan at a timestamp (defaults to now)"""
    try:
        preview = system.ledger.get_loan_preview(loan_id, timestamp)
    except LendingError as e:
        raise to_http_exception(e)
    return {
        "period_index": preview.period_index,
        "tracked_balance": preview.tracked_balance,
        "outstanding_balance": preview.outstanding_balance
    }


@router.get("/{loan_id}/installment-preview")
async def get_installment_preview(
    loan_id: int,
    timestamp: Optional[int] = None,
    system: LendingSystem = Depends(get_lending_system)
):
    """Preview the installment group containing a loan"""
    try:
        preview = system.installments.get_installment_preview(loan_id, timestamp)
    except LendingError as e:
        raise to_http_exception(e)
    return {
        "first_installment_id": preview.first_installment_id,
        "installment_count": preview.installment_count,
        "period_index": preview.period_index,
        "total_tracked_balance": preview.total_tracked_balance,
        "total_outstanding_balance": preview.total_outstanding_balance
    }


@router.post("/{loan_id}/repay")
async def repay_loan(
    loan_id: int,
    request: RepayLoanRequest,
    caller: str = Depends(get_caller),
    system: LendingSystem = Depends(get_lending_system)
):
    """Repay a loan; omit the amount to settle it in full"""
    amount = FULL_REPAYMENT_AMOUNT if request.amount is None else request.amount
    try:
        repaid = system.ledger.repay_loan(caller, loan_id, amount)
    except LendingError as e:
        raise to_http_exception(e)
    return {"loan_id": loan_id, "repaid_amount": repaid}


@router.post("/{loan_id}/freeze")
async def freeze_loan(
    loan_id: int,
    caller: str = Depends(get_caller),
    system: LendingSystem = Depends(get_lending_system)
):
    try:
        system.ledger.freeze(caller, loan_id)
    except LendingError as e:
        raise to_http_exception(e)
    return {"loan_id": loan_id, "status": "frozen"}


@router.post("/{loan_id}/unfreeze")
async def unfreeze_loan(
    loan_id: int,
    caller: str = Depends(get_caller),
    system: LendingSystem = Depends(get_lending_system)
):
    try:
        system.ledger.unfreeze(caller, loan_id)
    except LendingError as e:
        raise to_http_exception(e)
    return {"loan_id": loan_id, "status": system.ledger.get_loan_status(loan_id).value}


@router.post("/{loan_id}/revoke")
async def revoke_loan(
    loan_id: int,
    installment: bool = False,
    caller: str = Depends(get_caller),
    system: LendingSystem = Depends(get_lending_system)
):
    """Revoke a loan, or its whole installment group with ?installment=true"""
    try:
        if installment:
            system.ledger.revoke_installment_loan(caller, loan_id)
        else:
            system.ledger.revoke_loan(caller, loan_id)
    except LendingError as e:
        raise to_http_exception(e)
    return {"loan_id": loan_id, "status": "recovered"}


@router.post("/{loan_id}/interest-rate/{kind}")
async def update_interest_rate(
    loan_id: int,
    kind: str,
    request: UpdateRateRequest,
    caller: str = Depends(get_caller),
    system: LendingSystem = Depends(get_lending_system)
):
    """Lower the primary or secondary interest rate of a loan"""
    if kind not in ("primary", "secondary"):
        raise HTTPException(status_code=404, detail=f"Unknown interest rate kind: {kind}")
    try:
        if kind == "primary":
            system.ledger.update_loan_interest_rate_primary(caller, loan_id, request.interest_rate)
        else:
            system.ledger.update_loan_interest_rate_secondary(caller, loan_id, request.interest_rate)
    except LendingError as e:
        raise to_http_exception(e)
    return {"loan_id": loan_id, "kind": kind, "interest_rate": request.interest_rate}
