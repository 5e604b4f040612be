"""
Liquidity pool and program endpoints
"""

from fastapi import APIRouter, Depends, status

from .dependencies import get_lending_system, get_caller, to_http_exception
from .schemas import (
    CreatePoolRequest, DepositRequest, WithdrawRequest, AddonTreasuryRequest,
    CreateProgramRequest, ConfigureAliasRequest
)
from ..system import LendingSystem
from ..exceptions import LendingError


router = APIRouter()
programs_router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_pool(
    request: CreatePoolRequest,
    caller: str = Depends(get_caller),
    system: LendingSystem = Depends(get_lending_system)
):
    try:
        pool = system.pool_accountant.create_pool(caller, request.lender, request.token)
    except LendingError as e:
        raise to_http_exception(e)
    return pool.to_dict()


@router.get("")
async def list_pools(system: LendingSystem = Depends(get_lending_system)):
    return {"pools": [pool.to_dict() for pool in system.pool_accountant.list_pools()]}


@router.get("/{pool_id}/balances")
async def get_balances(pool_id: str, system: LendingSystem = Depends(get_lending_system)):
    try:
        borrowable, addons = system.pool_accountant.get_balances(pool_id)
    except LendingError as e:
        raise to_http_exception(e)
    return {"pool_id": pool_id, "borrowable": borrowable, "addons": addons}


@router.get("/{pool_id}/credit-lines/{credit_line_id}/balance")
async def get_credit_line_balance(
    pool_id: str,
    credit_line_id: str,
    system: LendingSystem = Depends(get_lending_system)
):
    try:
        borrowable, addons = system.pool_accountant.get_credit_line_balance(pool_id, credit_line_id)
    except LendingError as e:
        raise to_http_exception(e)
    return {"pool_id": pool_id, "credit_line_id": credit_line_id,
            "borrowable": borrowable, "addons": addons}


@router.post("/{pool_id}/deposit")
async def deposit(
    pool_id: str,
    request: DepositRequest,
    caller: str = Depends(get_caller),
    system: LendingSystem = Depends(get_lending_system)
):
    try:
        system.pool_accountant.deposit(caller, pool_id, request.amount, request.credit_line_id)
        borrowable, addons = system.pool_accountant.get_balances(pool_id)
    except LendingError as e:
        raise to_http_exception(e)
    return {"pool_id": pool_id, "borrowable": borrowable, "addons": addons}


@router.post("/{pool_id}/withdraw")
async def withdraw(
    pool_id: str,
    request: WithdrawRequest,
    caller: str = Depends(get_caller),
    system: LendingSystem = Depends(get_lending_system)
):
    try:
        system.pool_accountant.withdraw(
            caller, pool_id, request.borrowable_amount, request.addon_amount, request.credit_line_id
        )
        borrowable, addons = system.pool_accountant.get_balances(pool_id)
    except LendingError as e:
        raise to_http_exception(e)
    return {"pool_id": pool_id, "borrowable": borrowable, "addons": addons}


@router.put("/{pool_id}/addon-treasury")
async def set_addon_treasury(
    pool_id: str,
    request: AddonTreasuryRequest,
    caller: str = Depends(get_caller),
    system: LendingSystem = Depends(get_lending_system)
):
    try:
        system.pool_accountant.set_addon_treasury(caller, pool_id, request.treasury)
        pool = system.pool_accountant.get_pool(pool_id)
    except LendingError as e:
        raise to_http_exception(e)
    return pool.to_dict()


@programs_router.post("", status_code=status.HTTP_201_CREATED)
async def create_program(
    request: CreateProgramRequest,
    caller: str = Depends(get_caller),
    system: LendingSystem = Depends(get_lending_system)
):
    try:
        program = system.ledger.create_program(caller, request.credit_line_id, request.pool_id)
    except LendingError as e:
        raise to_http_exception(e)
    return program.to_dict()


@programs_router.post("/aliases")
async def configure_alias(
    request: ConfigureAliasRequest,
    caller: str = Depends(get_caller),
    system: LendingSystem = Depends(get_lending_system)
):
    try:
        system.ledger.configure_alias(caller, request.alias, request.is_alias)
    except LendingError as e:
        raise to_http_exception(e)
    return {"lender": caller, "alias": request.alias, "is_alias": request.is_alias}
