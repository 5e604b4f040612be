"""
Loan Ledger Module

Owns loan records and their lifecycle: take, repay, freeze, unfreeze,
revoke and batch auto repayment. Each loan keeps one accrual checkpoint
(tracked balance and timestamp); balances at later timestamps are always
recomputed from that checkpoint through the interest module.

Every mutating call runs inside one ``storage.atomic()`` scope, checks the
pause flag, refuses re-entry and writes loan, pool and credit state before
issuing any token transfer.
"""

import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple
from enum import Enum

from .storage import StorageInterface, StorageRecord
from .access import AccessController, PauseControl, Role
from .credit import CreditPolicyEngine, LoanTerms
from .pools import PoolAccountant
from .tokens import TokenTransferInterface
from .interest import InterestFormula, accrue_balance, calculate_period_index, round_math
from .config import LendingConfig, get_config
from .logging_config import get_logger, log_action
from .exceptions import (
    ZeroAddress, InvalidAmount, ArrayLengthMismatch, DurationArrayInvalid,
    InappropriateInterestRate, AlreadyConfigured, Unauthorized, ReentrantCall,
    LoanNotExist, LoanAlreadyRepaid, LoanAlreadyFrozen, LoanNotFrozen,
    LoanTypeUnexpected, CooldownPeriodHasPassed, ProgramNotExist, InvalidCreditLineConfiguration
)


logger = get_logger("lending.loans")

# Sentinel amount settling the whole outstanding balance
FULL_REPAYMENT_AMOUNT = (1 << 256) - 1


class LoanStatus(Enum):
    """Loan lifecycle states"""
    NONEXISTENT = "nonexistent"
    ACTIVE = "active"
    FROZEN = "frozen"
    DEFAULTED = "defaulted"    # past the due period and not settled
    REPAID = "repaid"
    RECOVERED = "recovered"    # revoked


@dataclass
class LoanRecord(StorageRecord):
    """A single loan; borrower, token, amounts, start and duration never change"""
    id: int
    program_id: int
    credit_line_id: str
    pool_id: str
    token: str
    borrower: str
    borrow_amount: int
    addon_amount: int
    start_timestamp: int
    duration_in_periods: int
    interest_rate_primary: int
    interest_rate_secondary: int
    interest_formula: InterestFormula
    tracked_balance: int
    tracked_timestamp: int
    repaid_amount: int = 0
    freeze_timestamp: int = 0
    frozen_periods: int = 0
    first_installment_id: int = 0
    installment_count: int = 0
    addon_treasury: str = ""
    revoked: bool = False
    
    _enum_fields = {"interest_formula": InterestFormula}
    
    @property
    def is_settled(self) -> bool:
        return self.revoked or self.tracked_balance == 0
    
    @property
    def is_frozen(self) -> bool:
        return self.freeze_timestamp != 0


@dataclass
class LoanPreview:
    """Balances of a loan as of a timestamp"""
    period_index: int
    tracked_balance: int
    outstanding_balance: int


@dataclass
class LendingProgram(StorageRecord):
    """Pairs a lender's credit line with the pool that funds it"""
    id: int
    lender: str
    credit_line_id: str
    pool_id: str


class LoanLedger:
    """
    Manages loans from origination through settlement or revocation
    """
    
    def __init__(
        self,
        storage: StorageInterface,
        credit_engine: CreditPolicyEngine,
        pool_accountant: PoolAccountant,
        tokens: TokenTransferInterface,
        access: AccessController,
        pause_control: PauseControl,
        config: Optional[LendingConfig] = None,
        clock: Optional[Callable[[], int]] = None
    ):
        self.storage = storage
        self.credit_engine = credit_engine
        self.pool_accountant = pool_accountant
        self.tokens = tokens
        self.access = access
        self.pause_control = pause_control
        self.config = config or get_config()
        self.clock = clock or (lambda: int(time.time()))
        
        self.loans_table = "loans"
        self.programs_table = "programs"
        self.aliases_table = "aliases"
        
        self._entered = False
    
    # ------------------------------------------------------------------
    # Programs and aliases
    # ------------------------------------------------------------------
    
    def create_program(self, caller: str, credit_line_id: str, pool_id: str) -> LendingProgram:
        """Create a program; caller must be the lender of both the credit line and the pool"""
        self._check_program_parts(caller, credit_line_id, pool_id)
        program = LendingProgram(
            id=self.storage.next_id("programs") + 1,
            lender=caller,
            credit_line_id=credit_line_id,
            pool_id=pool_id
        )
        self.storage.save(self.programs_table, program.id, program.to_dict())
        log_action(logger, "info", f"Created program {program.id}",
                   user_id=caller, action="program.created", resource=f"program:{program.id}",
                   extra={"credit_line_id": credit_line_id, "pool_id": pool_id})
        return program
    
    def update_program(self, caller: str, program_id: int, credit_line_id: str, pool_id: str) -> LendingProgram:
        program = self.get_program(program_id)
        if caller != program.lender:
            raise Unauthorized(caller, f"lender of program {program_id}")
        self._check_program_parts(caller, credit_line_id, pool_id)
        program.credit_line_id = credit_line_id
        program.pool_id = pool_id
        self.storage.save(self.programs_table, program.id, program.to_dict())
        log_action(logger, "info", f"Updated program {program.id}",
                   user_id=caller, action="program.updated", resource=f"program:{program.id}")
        return program
    
    def get_program(self, program_id: int) -> LendingProgram:
        data = self.storage.load(self.programs_table, program_id)
        if not data:
            raise ProgramNotExist(program_id)
        return LendingProgram.from_dict(data)
    
    def configure_alias(self, caller: str, alias: str, is_alias: bool) -> None:
        """Allow or forbid alias to act on behalf of caller's programs"""
        if not alias:
            raise ZeroAddress("alias")
        record = self.storage.load(self.aliases_table, f"{caller}:{alias}")
        if bool(record and record["is_alias"]) == is_alias:
            raise AlreadyConfigured(f"alias {alias} of lender {caller}")
        self.storage.save(self.aliases_table, f"{caller}:{alias}", {
            "lender": caller, "alias": alias, "is_alias": is_alias
        })
        log_action(logger, "info", f"Alias {alias} of {caller} set to {is_alias}",
                   user_id=caller, action="alias.configured", resource=f"lender:{caller}")
    
    def is_lender_or_alias(self, lender: str, account: str) -> bool:
        if not account:
            return False
        if account == lender:
            return True
        record = self.storage.load(self.aliases_table, f"{lender}:{account}")
        return bool(record and record["is_alias"])
    
    # ------------------------------------------------------------------
    # Origination
    # ------------------------------------------------------------------
    
    def take_loan(self, caller: str, program_id: int, borrow_amount: int, duration_in_periods: int) -> int:
        """
        Take a loan as the borrower.
        
        Args:
            caller: Borrower taking the loan
            program_id: Program whose credit line and pool fund the loan
            borrow_amount: Principal, a multiple of the accuracy factor
            duration_in_periods: Loan duration
            
        Returns:
            The new loan id
        """
        with self._lifecycle("take_loan"):
            now = self.clock()
            program = self.get_program(program_id)
            terms = self.credit_engine.determine_loan_terms(
                program.credit_line_id, caller, borrow_amount, duration_in_periods, now
            )
            self._check_rounded(borrow_amount, "borrow amount")
            terms.addon_amount = round_math(terms.addon_amount, self.config.accuracy_factor)
            
            loan = self._create_loan(program, caller, borrow_amount, terms, now)
            self.credit_engine.on_before_loan_taken(program.credit_line_id, caller, borrow_amount)
            self.pool_accountant.send_addon(loan)
            self.tokens.transfer(loan.token, loan.pool_id, caller, borrow_amount)
        
        self._log_taken(caller, loan)
        return loan.id
    
    def take_loan_for(
        self,
        caller: str,
        borrower: str,
        program_id: int,
        borrow_amount: int,
        addon_amount: int,
        duration_in_periods: int
    ) -> int:
        """Take a loan on behalf of borrower; caller must be the program lender or an alias"""
        with self._lifecycle("take_loan_for"):
            now = self.clock()
            program = self._require_program_lender(caller, program_id)
            terms = self.credit_engine.determine_loan_terms(
                program.credit_line_id, borrower, borrow_amount, duration_in_periods, now
            )
            self._check_rounded(borrow_amount, "borrow amount")
            self._check_rounded(addon_amount, "addon amount")
            terms.addon_amount = addon_amount
            
            loan = self._create_loan(program, borrower, borrow_amount, terms, now)
            self.credit_engine.on_before_loan_taken(program.credit_line_id, borrower, borrow_amount)
            self.pool_accountant.send_addon(loan)
            self.tokens.transfer(loan.token, loan.pool_id, borrower, borrow_amount)
        
        self._log_taken(caller, loan)
        return loan.id
    
    def take_installment_loan(
        self,
        caller: str,
        borrower: str,
        program_id: int,
        borrow_amounts: List[int],
        addon_amounts: List[int],
        durations: List[int]
    ) -> Tuple[int, int]:
        """
        Take an installment loan as a contiguous range of sub-loans.
        
        The total amount and the longest duration are validated against the
        borrower configuration; the borrow policy is applied once to the total.
        
        Returns:
            (first installment id, installment count)
        """
        if len(borrow_amounts) != len(addon_amounts) or len(borrow_amounts) != len(durations):
            raise ArrayLengthMismatch(len(borrow_amounts), len(addon_amounts), len(durations))
        if not borrow_amounts:
            raise InvalidAmount(0, "installment loan needs at least one installment")
        if any(later < earlier for earlier, later in zip(durations, durations[1:])):
            raise DurationArrayInvalid(durations)
        
        with self._lifecycle("take_installment_loan"):
            now = self.clock()
            program = self._require_program_lender(caller, program_id)
            total_amount = sum(borrow_amounts)
            terms = self.credit_engine.determine_loan_terms(
                program.credit_line_id, borrower, total_amount, durations[-1], now
            )
            for borrow_amount, addon_amount in zip(borrow_amounts, addon_amounts):
                if borrow_amount <= 0:
                    raise InvalidAmount(borrow_amount, "installment amount must be positive")
                self._check_rounded(borrow_amount, "borrow amount")
                self._check_rounded(addon_amount, "addon amount")
            
            count = len(borrow_amounts)
            loans = []
            for borrow_amount, addon_amount, duration in zip(borrow_amounts, addon_amounts, durations):
                installment_terms = LoanTerms(
                    token=terms.token,
                    duration_in_periods=duration,
                    interest_rate_primary=terms.interest_rate_primary,
                    interest_rate_secondary=terms.interest_rate_secondary,
                    interest_formula=terms.interest_formula,
                    addon_amount=addon_amount
                )
                first_id = loans[0].id if loans else None
                loans.append(self._create_loan(
                    program, borrower, borrow_amount, installment_terms, now,
                    first_installment_id=first_id, installment_count=count
                ))
            
            self.credit_engine.on_before_loan_taken(program.credit_line_id, borrower, total_amount)
            for loan in loans:
                self.pool_accountant.send_addon(loan)
            self.tokens.transfer(terms.token, program.pool_id, borrower, total_amount)
        
        for loan in loans:
            self._log_taken(caller, loan)
        return loans[0].id, count
    
    # ------------------------------------------------------------------
    # Repayment
    # ------------------------------------------------------------------
    
    def repay_loan(self, caller: str, loan_id: int, amount: int) -> int:
        """
        Repay part or all of a loan from caller's funds.
        
        Args:
            caller: Payer
            loan_id: Loan to repay
            amount: Amount rounded to the accuracy factor, or
                FULL_REPAYMENT_AMOUNT to settle the outstanding balance
                
        Returns:
            The amount actually repaid
            
        Raises:
            InvalidAmount: zero, not rounded, or above the outstanding balance
            LoanAlreadyRepaid: loan is settled or revoked
        """
        with self._lifecycle("repay_loan"):
            return self._repay(caller, caller, loan_id, amount, self.clock())
    
    def auto_repay(self, caller: str, loan_ids: List[int], amounts: List[int]) -> None:
        """
        Repay several loans from their borrowers' funds, in order.
        
        The batch is atomic: the first failing entry rolls back every entry.
        Borrowers must have approved the funding pool to pull repayments.
        """
        self.access.require_role(caller, Role.ADMIN)
        if len(loan_ids) != len(amounts):
            raise ArrayLengthMismatch(len(loan_ids), len(amounts))
        
        with self._lifecycle("auto_repay"):
            now = self.clock()
            for loan_id, amount in zip(loan_ids, amounts):
                loan = self._require_loan(loan_id)
                self._repay(caller, loan.borrower, loan_id, amount, now)
        
        log_action(logger, "info", f"Auto repaid {len(loan_ids)} loans",
                   user_id=caller, action="loan.auto_repaid",
                   extra={"loan_ids": list(loan_ids), "amounts": [str(a) for a in amounts]})
    
    def _repay(self, caller: str, payer: str, loan_id: int, amount: int, now: int) -> int:
        loan = self._require_ongoing_loan(loan_id)
        if amount <= 0:
            raise InvalidAmount(amount, "repayment amount must be positive")
        
        preview = self._preview(loan, now)
        outstanding = preview.outstanding_balance
        if amount == FULL_REPAYMENT_AMOUNT or amount == outstanding:
            repay_amount = outstanding
            loan.tracked_balance = 0
        else:
            self._check_rounded(amount, "repayment amount")
            if amount > outstanding:
                raise InvalidAmount(amount, f"exceeds outstanding balance {outstanding}")
            repay_amount = amount
            loan.tracked_balance = preview.tracked_balance - amount
        
        loan.repaid_amount += repay_amount
        loan.tracked_timestamp = loan.freeze_timestamp or now
        self._save_loan(loan)
        
        self.pool_accountant.on_after_loan_payment(loan, repay_amount)
        self.credit_engine.on_after_loan_payment(loan)
        self._pull(loan, payer, caller, repay_amount)
        
        log_action(logger, "info", f"Repaid {repay_amount} on loan {loan.id}",
                   user_id=caller, action="loan.repaid", resource=f"loan:{loan.id}",
                   extra={"payer": payer, "amount": str(repay_amount),
                          "tracked_balance": str(loan.tracked_balance)})
        return repay_amount
    
    # ------------------------------------------------------------------
    # Freezing
    # ------------------------------------------------------------------
    
    def freeze(self, caller: str, loan_id: int) -> None:
        """Stop interest accrual at the current timestamp"""
        with self._lifecycle("freeze"):
            loan = self._require_ongoing_loan(loan_id)
            self._require_program_lender(caller, loan.program_id)
            if loan.is_frozen:
                raise LoanAlreadyFrozen(loan_id)
            loan.freeze_timestamp = self.clock()
            self._save_loan(loan)
        
        log_action(logger, "info", f"Froze loan {loan_id}",
                   user_id=caller, action="loan.frozen", resource=f"loan:{loan_id}")
    
    def unfreeze(self, caller: str, loan_id: int) -> None:
        """
        Resume accrual, excising the frozen interval.
        
        The balance is checkpointed at the freeze timestamp and the checkpoint
        then moves forward to now, so frozen periods never accrue. The due
        period shifts by the same number of periods.
        """
        with self._lifecycle("unfreeze"):
            loan = self._require_ongoing_loan(loan_id)
            self._require_program_lender(caller, loan.program_id)
            if not loan.is_frozen:
                raise LoanNotFrozen(loan_id)
            
            now = self.clock()
            preview = self._preview(loan, loan.freeze_timestamp)
            frozen_periods = max(0, self._period_index(now) - self._period_index(loan.freeze_timestamp))
            
            loan.tracked_balance = preview.tracked_balance
            loan.tracked_timestamp = now
            loan.frozen_periods += frozen_periods
            loan.freeze_timestamp = 0
            self._save_loan(loan)
        
        log_action(logger, "info", f"Unfroze loan {loan_id}",
                   user_id=caller, action="loan.unfrozen", resource=f"loan:{loan_id}",
                   extra={"frozen_periods": frozen_periods})
    
    # ------------------------------------------------------------------
    # Revocation
    # ------------------------------------------------------------------
    
    def revoke_loan(self, caller: str, loan_id: int) -> None:
        """
        Reverse a standalone loan within the cooldown window.
        
        The borrower returns ``borrow - repaid`` to the pool, or receives the
        difference back when more than the principal was repaid. The pool
        recovers the addon.
        """
        with self._lifecycle("revoke_loan"):
            loan = self._require_ongoing_loan(loan_id)
            if loan.installment_count:
                raise LoanTypeUnexpected(loan_id, "a standalone loan")
            self._revoke(caller, [loan], self.clock())
    
    def revoke_installment_loan(self, caller: str, loan_id: int) -> None:
        """Revoke every ongoing sub-loan of the installment group containing loan_id"""
        with self._lifecycle("revoke_installment_loan"):
            loan = self._require_loan(loan_id)
            if not loan.installment_count:
                raise LoanTypeUnexpected(loan_id, "an installment loan")
            now = self.clock()
            members = [self._require_loan(member_id) for member_id in self._installment_ids(loan)]
            ongoing = [member for member in members if not member.is_settled]
            if not ongoing:
                raise LoanAlreadyRepaid(loan_id)
            self._revoke(caller, ongoing, now)
    
    def _revoke(self, caller: str, loans: List[LoanRecord], now: int) -> None:
        """Settle every loan's state and hooks first, then move the tokens"""
        for loan in loans:
            program = self.get_program(loan.program_id)
            if caller != loan.borrower and not self.is_lender_or_alias(program.lender, caller):
                raise Unauthorized(caller, f"borrower or lender of loan {loan.id}")
            
            start_period = self._period_index(loan.start_timestamp)
            current_period = self._period_index(now)
            if current_period - start_period >= self.config.cooldown_in_periods:
                raise CooldownPeriodHasPassed(
                    loan.id, start_period, current_period, self.config.cooldown_in_periods
                )
            
            loan.tracked_balance = 0
            loan.tracked_timestamp = now
            loan.revoked = True
            self._save_loan(loan)
            self.pool_accountant.on_after_loan_revocation(loan)
            self.credit_engine.on_after_loan_revocation(loan)
        
        for loan in loans:
            correction = loan.borrow_amount - loan.repaid_amount
            self.pool_accountant.recover_addon(loan)
            if correction > 0:
                self._pull(loan, loan.borrower, caller, correction)
            elif correction < 0:
                self.tokens.transfer(loan.token, loan.pool_id, loan.borrower, -correction)
            
            log_action(logger, "info", f"Revoked loan {loan.id}",
                       user_id=caller, action="loan.revoked", resource=f"loan:{loan.id}",
                       extra={"correction": str(correction), "addon_amount": str(loan.addon_amount)})
    
    # ------------------------------------------------------------------
    # Rate updates
    # ------------------------------------------------------------------
    
    def update_loan_interest_rate_primary(self, caller: str, loan_id: int, interest_rate: int) -> None:
        """Lower the primary rate; accrual so far is checkpointed first"""
        self._update_rate(caller, loan_id, interest_rate, "interest_rate_primary")
    
    def update_loan_interest_rate_secondary(self, caller: str, loan_id: int, interest_rate: int) -> None:
        """Lower the secondary rate; accrual so far is checkpointed first"""
        self._update_rate(caller, loan_id, interest_rate, "interest_rate_secondary")
    
    def _update_rate(self, caller: str, loan_id: int, interest_rate: int, field_name: str) -> None:
        with self._lifecycle(f"update_{field_name}"):
            loan = self._require_ongoing_loan(loan_id)
            self._require_program_lender(caller, loan.program_id)
            current = getattr(loan, field_name)
            if interest_rate >= current or interest_rate < 0:
                raise InappropriateInterestRate(loan_id, current, interest_rate)
            
            now = self.clock()
            preview = self._preview(loan, now)
            loan.tracked_balance = preview.tracked_balance
            loan.tracked_timestamp = loan.freeze_timestamp or now
            setattr(loan, field_name, interest_rate)
            self._save_loan(loan)
        
        log_action(logger, "info", f"Updated {field_name} of loan {loan_id}",
                   user_id=caller, action="loan.rate_updated", resource=f"loan:{loan_id}",
                   extra={"field": field_name, "old": current, "new": interest_rate})
    
    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    
    def get_loan_state(self, loan_id: int) -> Optional[LoanRecord]:
        data = self.storage.load(self.loans_table, loan_id)
        return LoanRecord.from_dict(data) if data else None
    
    def get_loan_preview(self, loan_id: int, timestamp: Optional[int] = None) -> LoanPreview:
        loan = self._require_loan(loan_id)
        return self._preview(loan, self.clock() if timestamp is None else timestamp)
    
    def get_loan_status(self, loan_id: int, timestamp: Optional[int] = None) -> LoanStatus:
        loan = self.get_loan_state(loan_id)
        if loan is None:
            return LoanStatus.NONEXISTENT
        if loan.revoked:
            return LoanStatus.RECOVERED
        if loan.tracked_balance == 0:
            return LoanStatus.REPAID
        if loan.is_frozen:
            return LoanStatus.FROZEN
        timestamp = self.clock() if timestamp is None else timestamp
        if self._period_index(timestamp) > self._due_period(loan):
            return LoanStatus.DEFAULTED
        return LoanStatus.ACTIVE
    
    def get_installment_ids(self, loan_id: int) -> List[int]:
        """Ids of the installment group containing loan_id, or [loan_id] for a standalone loan"""
        return self._installment_ids(self._require_loan(loan_id))
    
    def loan_counter(self) -> int:
        record = self.storage.load("counters", "loans")
        return record["value"] if record else 0
    
    def get_borrower_loans(self, borrower: str) -> List[LoanRecord]:
        loans = [LoanRecord.from_dict(data) for data in self.storage.find(self.loans_table, {"borrower": borrower})]
        return sorted(loans, key=lambda loan: loan.id)
    
    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    
    @contextmanager
    def _lifecycle(self, operation: str):
        """Pause check, re-entry guard and a single atomic scope for one mutating call"""
        if self._entered:
            raise ReentrantCall(operation)
        self.pause_control.require_not_paused()
        self._entered = True
        try:
            with self.storage.atomic():
                yield
        finally:
            self._entered = False
    
    def _create_loan(
        self,
        program: LendingProgram,
        borrower: str,
        borrow_amount: int,
        terms: LoanTerms,
        now: int,
        first_installment_id: Optional[int] = None,
        installment_count: int = 0
    ) -> LoanRecord:
        loan_id = self.storage.next_id("loans")
        loan = LoanRecord(
            id=loan_id,
            program_id=program.id,
            credit_line_id=program.credit_line_id,
            pool_id=program.pool_id,
            token=terms.token,
            borrower=borrower,
            borrow_amount=borrow_amount,
            addon_amount=terms.addon_amount,
            start_timestamp=now,
            duration_in_periods=terms.duration_in_periods,
            interest_rate_primary=terms.interest_rate_primary,
            interest_rate_secondary=terms.interest_rate_secondary,
            interest_formula=terms.interest_formula,
            tracked_balance=borrow_amount + terms.addon_amount,
            tracked_timestamp=now,
            first_installment_id=loan_id if first_installment_id is None else first_installment_id,
            installment_count=installment_count
        )
        loan.addon_treasury = self.pool_accountant.on_before_loan_taken(loan)
        self._save_loan(loan)
        return loan
    
    def _preview(self, loan: LoanRecord, timestamp: int) -> LoanPreview:
        accrual_timestamp = loan.freeze_timestamp or timestamp
        balance = accrue_balance(
            loan.tracked_balance,
            self._period_index(loan.tracked_timestamp),
            self._period_index(accrual_timestamp),
            self._due_period(loan),
            loan.interest_rate_primary,
            loan.interest_rate_secondary,
            self.config.interest_rate_factor,
            loan.interest_formula
        )
        return LoanPreview(
            period_index=self._period_index(timestamp),
            tracked_balance=balance,
            outstanding_balance=round_math(balance, self.config.accuracy_factor)
        )
    
    def _period_index(self, timestamp: int) -> int:
        return calculate_period_index(
            timestamp, self.config.period_in_seconds, self.config.negative_time_offset
        )
    
    def _due_period(self, loan: LoanRecord) -> int:
        return self._period_index(loan.start_timestamp) + loan.duration_in_periods + loan.frozen_periods
    
    def _installment_ids(self, loan: LoanRecord) -> List[int]:
        if not loan.installment_count:
            return [loan.id]
        return list(range(loan.first_installment_id, loan.first_installment_id + loan.installment_count))
    
    def _pull(self, loan: LoanRecord, payer: str, caller: str, amount: int) -> None:
        """Move amount from payer into the loan's pool"""
        if payer == caller:
            self.tokens.transfer(loan.token, payer, loan.pool_id, amount)
        else:
            self.tokens.transfer_from(loan.token, loan.pool_id, payer, loan.pool_id, amount)
    
    def _check_rounded(self, amount: int, what: str) -> None:
        if amount % self.config.accuracy_factor:
            raise InvalidAmount(amount, f"{what} not rounded to {self.config.accuracy_factor}")
    
    def _check_program_parts(self, caller: str, credit_line_id: str, pool_id: str) -> None:
        credit_line = self.credit_engine.get_credit_line(credit_line_id)
        pool = self.pool_accountant.get_pool(pool_id)
        if caller != credit_line.lender or caller != pool.lender:
            raise Unauthorized(caller, "lender of both credit line and pool")
        if credit_line.token != pool.token:
            raise InvalidCreditLineConfiguration(
                f"credit line token {credit_line.token} differs from pool token {pool.token}"
            )
    
    def _require_program_lender(self, caller: str, program_id: int) -> LendingProgram:
        program = self.get_program(program_id)
        if not self.is_lender_or_alias(program.lender, caller):
            raise Unauthorized(caller, f"lender or alias of program {program_id}")
        return program
    
    def _require_loan(self, loan_id: int) -> LoanRecord:
        loan = self.get_loan_state(loan_id)
        if loan is None:
            raise LoanNotExist(loan_id)
        return loan
    
    def _require_ongoing_loan(self, loan_id: int) -> LoanRecord:
        loan = self._require_loan(loan_id)
        if loan.is_settled:
            raise LoanAlreadyRepaid(loan_id)
        return loan
    
    def _save_loan(self, loan: LoanRecord) -> None:
        self.storage.save(self.loans_table, loan.id, loan.to_dict())
    
    def _log_taken(self, caller: str, loan: LoanRecord) -> None:
        log_action(logger, "info", f"Loan {loan.id} taken by {loan.borrower}",
                   user_id=caller, action="loan.taken", resource=f"loan:{loan.id}",
                   extra={"program_id": loan.program_id, "borrow_amount": str(loan.borrow_amount),
                          "addon_amount": str(loan.addon_amount),
                          "duration_in_periods": loan.duration_in_periods})
