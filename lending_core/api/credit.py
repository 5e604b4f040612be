"""
Credit line and borrower configuration endpoints
"""

from fastapi import APIRouter, HTTPException, Depends, status

from .dependencies import get_lending_system, get_caller, to_http_exception
from .schemas import CreateCreditLineRequest, CreditLineConfigModel, BorrowerConfigModel
from ..system import LendingSystem
from ..exceptions import LendingError


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_credit_line(
    request: CreateCreditLineRequest,
    caller: str = Depends(get_caller),
    system: LendingSystem = Depends(get_lending_system)
):
    try:
        credit_line = system.credit_engine.create_credit_line(caller, request.lender, request.token)
    except LendingError as e:
        raise to_http_exception(e)
    return credit_line.to_dict()


@router.put("/{credit_line_id}/config")
async def configure_credit_line(
    credit_line_id: str,
    request: CreditLineConfigModel,
    caller: str = Depends(get_caller),
    system: LendingSystem = Depends(get_lending_system)
):
    try:
        system.credit_engine.configure_credit_line(caller, credit_line_id, request.to_config())
    except LendingError as e:
        raise to_http_exception(e)
    return {"credit_line_id": credit_line_id, "message": "Credit line configured"}


@router.put("/{credit_line_id}/borrowers/{borrower}")
async def configure_borrower(
    credit_line_id: str,
    borrower: str,
    request: BorrowerConfigModel,
    caller: str = Depends(get_caller),
    system: LendingSystem = Depends(get_lending_system)
):
    try:
        system.credit_engine.configure_borrower(caller, credit_line_id, borrower, request.to_config())
    except LendingError as e:
        raise to_http_exception(e)
    return {"credit_line_id": credit_line_id, "borrower": borrower, "message": "Borrower configured"}


@router.get("/{credit_line_id}/borrowers/{borrower}")
async def get_borrower_config(
    credit_line_id: str,
    borrower: str,
    system: LendingSystem = Depends(get_lending_system)
):
    try:
        config = system.credit_engine.get_borrower_config(credit_line_id, borrower)
    except LendingError as e:
        raise to_http_exception(e)
    if config is None:
        raise HTTPException(status_code=404, detail=f"Borrower {borrower} is not configured")
    return config.to_dict()
