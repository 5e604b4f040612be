"""
Credit Policy Module

Credit lines define the bounds a lender accepts; borrower configurations
live inside those bounds and carry each borrower's limits, rates, addon
rates, expiration and borrow policy. The engine resolves loan terms at
origination and adjusts ``max_borrow_amount`` on every loan event according
to the borrower's policy.
"""

from dataclasses import dataclass
from typing import List, Optional
from enum import Enum

from .storage import StorageInterface, StorageRecord
from .access import AccessController, Role
from .interest import InterestFormula, resolve_formula
from .config import LendingConfig, get_config
from .logging_config import get_logger, log_action
from .exceptions import (
    ZeroAddress, InvalidAmount, ArrayLengthMismatch, LoanDurationOutOfRange,
    ConfigurationExpired, InvalidBorrowerConfiguration, InvalidCreditLineConfiguration,
    CreditLineNotExist, Unauthorized, DivisionByZero
)


logger = get_logger("lending.credit")


class BorrowPolicy(Enum):
    """How max_borrow_amount changes after a loan is taken"""
    RESET = "reset"                          # drop the limit to zero
    KEEP = "keep"                            # leave the limit unchanged
    DECREASE = "decrease"                    # subtract the borrowed amount
    DECREASE_INCREASE = "decrease_increase"  # subtract, restore on repayment or revocation


@dataclass
class CreditLine(StorageRecord):
    """A lender's credit line for one token"""
    id: str
    lender: str
    token: str
    configured: bool = False


@dataclass
class CreditLineConfig(StorageRecord):
    """Bounds every borrower configuration on a credit line must respect"""
    min_borrow_amount: int = 0
    max_borrow_amount: int = 0
    min_duration_in_periods: int = 0
    max_duration_in_periods: int = 0
    min_interest_rate_primary: int = 0
    max_interest_rate_primary: int = 0
    min_interest_rate_secondary: int = 0
    max_interest_rate_secondary: int = 0
    min_addon_fixed_rate: int = 0
    max_addon_fixed_rate: int = 0
    min_addon_period_rate: int = 0
    max_addon_period_rate: int = 0
    
    def validate(self) -> None:
        """Raise InvalidCreditLineConfiguration when a min exceeds its max"""
        pairs = [
            ("borrow amount", self.min_borrow_amount, self.max_borrow_amount),
            ("duration", self.min_duration_in_periods, self.max_duration_in_periods),
            ("primary interest rate", self.min_interest_rate_primary, self.max_interest_rate_primary),
            ("secondary interest rate", self.min_interest_rate_secondary, self.max_interest_rate_secondary),
            ("addon fixed rate", self.min_addon_fixed_rate, self.max_addon_fixed_rate),
            ("addon period rate", self.min_addon_period_rate, self.max_addon_period_rate),
        ]
        for name, minimum, maximum in pairs:
            if minimum < 0:
                raise InvalidCreditLineConfiguration(f"min {name} is negative")
            if minimum > maximum:
                raise InvalidCreditLineConfiguration(f"min {name} {minimum} exceeds max {maximum}")


@dataclass
class BorrowerConfig(StorageRecord):
    """Limits, pricing and policy for one borrower on one credit line"""
    expiration: int
    min_borrow_amount: int
    max_borrow_amount: int
    min_duration_in_periods: int
    max_duration_in_periods: int
    interest_rate_primary: int
    interest_rate_secondary: int
    addon_fixed_rate: int = 0
    addon_period_rate: int = 0
    borrow_policy: BorrowPolicy = BorrowPolicy.KEEP
    interest_formula: Optional[InterestFormula] = None  # configured default when None
    
    _enum_fields = {"borrow_policy": BorrowPolicy, "interest_formula": InterestFormula}
    
    def is_expired(self, now: int) -> bool:
        return self.expiration < now


@dataclass
class LoanTerms:
    """Terms resolved for a loan at origination"""
    token: str
    duration_in_periods: int
    interest_rate_primary: int
    interest_rate_secondary: int
    interest_formula: InterestFormula
    addon_amount: int


def calculate_addon_amount(
    borrow_amount: int,
    duration_in_periods: int,
    addon_fixed_rate: int,
    addon_period_rate: int,
    interest_rate_factor: int
) -> int:
    """
    Addon charged on top of the borrowed amount.
    
    The addon rate is ``period_rate * duration + fixed_rate`` and is applied
    to the gross amount, so ``addon = amount * rate / (factor - rate)``,
    rounded down.
    """
    addon_rate = addon_period_rate * duration_in_periods + addon_fixed_rate
    denominator = interest_rate_factor - addon_rate
    if denominator <= 0:
        raise DivisionByZero("calculate_addon_amount")
    return (borrow_amount * addon_rate) // denominator


class CreditPolicyEngine:
    """
    Manages credit lines and borrower configurations
    """
    
    def __init__(
        self,
        storage: StorageInterface,
        access: AccessController,
        config: Optional[LendingConfig] = None
    ):
        self.storage = storage
        self.access = access
        self.config = config or get_config()
        
        self.credit_lines_table = "credit_lines"
        self.credit_line_configs_table = "credit_line_configs"
        self.borrower_configs_table = "borrower_configs"
    
    # ------------------------------------------------------------------
    # Credit lines
    # ------------------------------------------------------------------
    
    def create_credit_line(self, caller: str, lender: str, token: str) -> CreditLine:
        """Register a credit line for lender; caller must be an owner"""
        self.access.require_role(caller, Role.OWNER)
        if not lender:
            raise ZeroAddress("lender")
        if not token:
            raise ZeroAddress("token")
        
        credit_line = CreditLine(
            id=f"cl-{self.storage.next_id('credit_lines')}",
            lender=lender,
            token=token
        )
        self.storage.save(self.credit_lines_table, credit_line.id, credit_line.to_dict())
        log_action(logger, "info", f"Created credit line {credit_line.id}",
                   user_id=caller, action="credit_line.created",
                   resource=f"credit_line:{credit_line.id}",
                   extra={"lender": lender, "token": token})
        return credit_line
    
    def get_credit_line(self, credit_line_id: str) -> CreditLine:
        data = self.storage.load(self.credit_lines_table, credit_line_id)
        if not data:
            raise CreditLineNotExist(credit_line_id)
        return CreditLine.from_dict(data)
    
    def configure_credit_line(self, caller: str, credit_line_id: str, config: CreditLineConfig) -> None:
        """Set the bounds of a credit line; caller must be an owner"""
        self.access.require_role(caller, Role.OWNER)
        credit_line = self.get_credit_line(credit_line_id)
        config.validate()
        
        with self.storage.atomic():
            self.storage.save(self.credit_line_configs_table, credit_line_id, config.to_dict())
            credit_line.configured = True
            self.storage.save(self.credit_lines_table, credit_line_id, credit_line.to_dict())
        
        log_action(logger, "info", f"Configured credit line {credit_line_id}",
                   user_id=caller, action="credit_line.configured",
                   resource=f"credit_line:{credit_line_id}", extra=config.to_dict())
    
    def get_credit_line_config(self, credit_line_id: str) -> Optional[CreditLineConfig]:
        data = self.storage.load(self.credit_line_configs_table, credit_line_id)
        return CreditLineConfig.from_dict(data) if data else None
    
    # ------------------------------------------------------------------
    # Borrowers
    # ------------------------------------------------------------------
    
    def configure_borrower(
        self,
        caller: str,
        credit_line_id: str,
        borrower: str,
        config: BorrowerConfig
    ) -> None:
        """
        Create or replace a borrower configuration.
        
        Args:
            caller: Must hold ADMIN or be the credit line's lender
            credit_line_id: Credit line the borrower draws on
            borrower: Borrower identity
            config: New configuration, validated against the credit line bounds
            
        Raises:
            InvalidBorrowerConfiguration: config violates the credit line bounds
            InvalidCreditLineConfiguration: the credit line has no bounds yet
        """
        credit_line = self.get_credit_line(credit_line_id)
        self._require_admin(caller, credit_line)
        if not borrower:
            raise ZeroAddress("borrower")
        self._validate_borrower_config(credit_line_id, config)
        
        self._save_borrower_config(credit_line_id, borrower, config)
        log_action(logger, "info", f"Configured borrower {borrower} on {credit_line_id}",
                   user_id=caller, action="borrower.configured",
                   resource=f"borrower:{credit_line_id}:{borrower}", extra=config.to_dict())
    
    def configure_borrowers(
        self,
        caller: str,
        credit_line_id: str,
        borrowers: List[str],
        configs: List[BorrowerConfig]
    ) -> None:
        """Configure several borrowers at once; all or nothing"""
        if len(borrowers) != len(configs):
            raise ArrayLengthMismatch(len(borrowers), len(configs))
        with self.storage.atomic():
            for borrower, config in zip(borrowers, configs):
                self.configure_borrower(caller, credit_line_id, borrower, config)
    
    def get_borrower_config(self, credit_line_id: str, borrower: str) -> Optional[BorrowerConfig]:
        data = self.storage.load(self.borrower_configs_table, self._borrower_key(credit_line_id, borrower))
        return BorrowerConfig.from_dict(data) if data else None
    
    # ------------------------------------------------------------------
    # Loan terms
    # ------------------------------------------------------------------
    
    def determine_loan_terms(
        self,
        credit_line_id: str,
        borrower: str,
        borrow_amount: int,
        duration_in_periods: int,
        now: int
    ) -> LoanTerms:
        """
        Validate a loan request against the borrower's configuration and
        resolve its terms.
        
        Raises:
            ZeroAddress: borrower is empty
            ConfigurationExpired: configuration is missing or expired, checked
                before amount and duration
            InvalidAmount: amount is zero or outside [min, max]
            LoanDurationOutOfRange: duration outside [min, max]
        """
        if not borrower:
            raise ZeroAddress("borrower")
        credit_line = self.get_credit_line(credit_line_id)
        
        config = self.get_borrower_config(credit_line_id, borrower)
        if config is None:
            raise ConfigurationExpired(borrower, 0, now)
        if config.is_expired(now):
            raise ConfigurationExpired(borrower, config.expiration, now)
        
        if borrow_amount <= 0:
            raise InvalidAmount(borrow_amount, "borrow amount must be positive")
        if borrow_amount < config.min_borrow_amount:
            raise InvalidAmount(borrow_amount, f"below minimum {config.min_borrow_amount}")
        if borrow_amount > config.max_borrow_amount:
            raise InvalidAmount(borrow_amount, f"above maximum {config.max_borrow_amount}")
        if not (config.min_duration_in_periods <= duration_in_periods <= config.max_duration_in_periods):
            raise LoanDurationOutOfRange(
                duration_in_periods, config.min_duration_in_periods, config.max_duration_in_periods
            )
        
        return LoanTerms(
            token=credit_line.token,
            duration_in_periods=duration_in_periods,
            interest_rate_primary=config.interest_rate_primary,
            interest_rate_secondary=config.interest_rate_secondary,
            interest_formula=config.interest_formula or resolve_formula(self.config.interest_formula),
            addon_amount=calculate_addon_amount(
                borrow_amount,
                duration_in_periods,
                config.addon_fixed_rate,
                config.addon_period_rate,
                self.config.interest_rate_factor
            )
        )
    
    # ------------------------------------------------------------------
    # Lifecycle hooks
    # ------------------------------------------------------------------
    
    def on_before_loan_taken(self, credit_line_id: str, borrower: str, borrow_amount: int) -> None:
        """Apply the borrower's policy to max_borrow_amount"""
        config = self.get_borrower_config(credit_line_id, borrower)
        if config is None:
            return
        
        policy = config.borrow_policy
        if policy == BorrowPolicy.RESET:
            config.max_borrow_amount = 0
        elif policy in (BorrowPolicy.DECREASE, BorrowPolicy.DECREASE_INCREASE):
            config.max_borrow_amount = max(0, config.max_borrow_amount - borrow_amount)
        else:
            return
        
        self._save_borrower_config(credit_line_id, borrower, config)
        logger.debug("Borrow policy %s applied to %s: max borrow amount %d",
                     policy.value, borrower, config.max_borrow_amount)
    
    def on_after_loan_payment(self, loan) -> None:
        """Restore a revolving limit once the loan is fully repaid"""
        if loan.tracked_balance == 0:
            self._restore_limit(loan.credit_line_id, loan.borrower, loan.borrow_amount)
    
    def on_after_loan_revocation(self, loan) -> None:
        """Restore a revolving limit when the loan is revoked"""
        self._restore_limit(loan.credit_line_id, loan.borrower, loan.borrow_amount)
    
    def _restore_limit(self, credit_line_id: str, borrower: str, amount: int) -> None:
        config = self.get_borrower_config(credit_line_id, borrower)
        if config is None or config.borrow_policy != BorrowPolicy.DECREASE_INCREASE:
            return
        config.max_borrow_amount += amount
        self._save_borrower_config(credit_line_id, borrower, config)
        logger.debug("Restored %d to borrower %s: max borrow amount %d",
                     amount, borrower, config.max_borrow_amount)
    
    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    
    def _require_admin(self, caller: str, credit_line: CreditLine) -> None:
        if caller and caller == credit_line.lender:
            return
        if not self.access.caller_has_role(caller, Role.ADMIN):
            raise Unauthorized(caller, f"admin of credit line {credit_line.id}")
    
    def _validate_borrower_config(self, credit_line_id: str, config: BorrowerConfig) -> None:
        bounds = self.get_credit_line_config(credit_line_id)
        if bounds is None:
            raise InvalidCreditLineConfiguration(f"credit line {credit_line_id} is not configured")
        
        if config.min_borrow_amount > config.max_borrow_amount:
            raise InvalidBorrowerConfiguration("min borrow amount exceeds max borrow amount")
        if config.min_borrow_amount < bounds.min_borrow_amount:
            raise InvalidBorrowerConfiguration("min borrow amount below credit line minimum")
        if config.max_borrow_amount > bounds.max_borrow_amount:
            raise InvalidBorrowerConfiguration("max borrow amount above credit line maximum")
        if config.min_duration_in_periods > config.max_duration_in_periods:
            raise InvalidBorrowerConfiguration("min duration exceeds max duration")
        if config.min_duration_in_periods < bounds.min_duration_in_periods:
            raise InvalidBorrowerConfiguration("min duration below credit line minimum")
        if config.max_duration_in_periods > bounds.max_duration_in_periods:
            raise InvalidBorrowerConfiguration("max duration above credit line maximum")
        
        checks = [
            ("primary interest rate", config.interest_rate_primary,
             bounds.min_interest_rate_primary, bounds.max_interest_rate_primary),
            ("secondary interest rate", config.interest_rate_secondary,
             bounds.min_interest_rate_secondary, bounds.max_interest_rate_secondary),
            ("addon fixed rate", config.addon_fixed_rate,
             bounds.min_addon_fixed_rate, bounds.max_addon_fixed_rate),
            ("addon period rate", config.addon_period_rate,
             bounds.min_addon_period_rate, bounds.max_addon_period_rate),
        ]
        for name, value, minimum, maximum in checks:
            if value < minimum:
                raise InvalidBorrowerConfiguration(f"{name} {value} below credit line minimum {minimum}")
            if value > maximum:
                raise InvalidBorrowerConfiguration(f"{name} {value} above credit line maximum {maximum}")
        
        max_addon_rate = config.addon_period_rate * config.max_duration_in_periods + config.addon_fixed_rate
        if max_addon_rate >= self.config.interest_rate_factor:
            raise InvalidBorrowerConfiguration("addon rate reaches the interest rate factor")
    
    def _save_borrower_config(self, credit_line_id: str, borrower: str, config: BorrowerConfig) -> None:
        data = config.to_dict()
        data["credit_line_id"] = credit_line_id
        data["borrower"] = borrower
        self.storage.save(self.borrower_configs_table, self._borrower_key(credit_line_id, borrower), data)
    
    @staticmethod
    def _borrower_key(credit_line_id: str, borrower: str) -> str:
        return f"{credit_line_id}:{borrower}"
