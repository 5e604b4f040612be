"""
Pydantic schemas for API requests
"""

from typing import List, Optional
from pydantic import BaseModel, Field

from ..credit import BorrowerConfig, BorrowPolicy, CreditLineConfig
from ..interest import InterestFormula


# Credit line schemas
class CreateCreditLineRequest(BaseModel):
    lender: str
    token: str


class CreditLineConfigModel(BaseModel):
    min_borrow_amount: int = Field(0, ge=0)
    max_borrow_amount: int = Field(0, ge=0)
    min_duration_in_periods: int = Field(0, ge=0)
    max_duration_in_periods: int = Field(0, ge=0)
    min_interest_rate_primary: int = Field(0, ge=0)
    max_interest_rate_primary: int = Field(0, ge=0)
    min_interest_rate_secondary: int = Field(0, ge=0)
    max_interest_rate_secondary: int = Field(0, ge=0)
    min_addon_fixed_rate: int = Field(0, ge=0)
    max_addon_fixed_rate: int = Field(0, ge=0)
    min_addon_period_rate: int = Field(0, ge=0)
    max_addon_period_rate: int = Field(0, ge=0)
    
    def to_config(self) -> CreditLineConfig:
        return CreditLineConfig(**self.model_dump())


class BorrowerConfigModel(BaseModel):
    expiration: int
    min_borrow_amount: int = Field(..., ge=0)
    max_borrow_amount: int = Field(..., ge=0)
    min_duration_in_periods: int = Field(..., ge=0)
    max_duration_in_periods: int = Field(..., ge=0)
    interest_rate_primary: int = Field(..., ge=0)
    interest_rate_secondary: int = Field(..., ge=0)
    addon_fixed_rate: int = Field(0, ge=0)
    addon_period_rate: int = Field(0, ge=0)
    borrow_policy: BorrowPolicy = BorrowPolicy.KEEP
    interest_formula: Optional[InterestFormula] = None
    
    def to_config(self) -> BorrowerConfig:
        return BorrowerConfig(**self.model_dump())


# Pool schemas
class CreatePoolRequest(BaseModel):
    lender: str
    token: str


class DepositRequest(BaseModel):
    amount: int
    credit_line_id: Optional[str] = None


class WithdrawRequest(BaseModel):
    borrowable_amount: int = 0
    addon_amount: int = 0
    credit_line_id: Optional[str] = None


class AddonTreasuryRequest(BaseModel):
    treasury: str


# Program schemas
class CreateProgramRequest(BaseModel):
    credit_line_id: str
    pool_id: str


class ConfigureAliasRequest(BaseModel):
    alias: str
    is_alias: bool


# Loan schemas
class TakeLoanRequest(BaseModel):
    program_id: int
    borrow_amount: int
    duration_in_periods: int


class TakeLoanForRequest(TakeLoanRequest):
    borrower: str
    addon_amount: int = 0


class TakeInstallmentLoanRequest(BaseModel):
    program_id: int
    borrower: str
    borrow_amounts: List[int]
    addon_amounts: List[int]
    durations: List[int]


class RepayLoanRequest(BaseModel):
    amount: Optional[int] = Field(None, description="Omit to repay the full outstanding balance")


class AutoRepayRequest(BaseModel):
    loan_ids: List[int]
    amounts: List[int]


class UpdateRateRequest(BaseModel):
    interest_rate: int
