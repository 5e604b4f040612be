"""
Lending Engine Exceptions

Typed errors raised by the lending core. Every error carries a stable
``code`` so callers (and the HTTP layer) can map failures without parsing
messages.

Hierarchy:
    LendingError
    ├── ValidationError          caller-correctable input problems
    ├── StateError               current state forbids the operation
    ├── LendingArithmeticError   fixed-point or formula failures, always fatal
    └── ExternalCallError        token transfer failures
"""

from typing import Optional


class LendingError(Exception):
    """Base exception for all lending engine errors."""

    code: str = "LENDING_ERROR"


# =============================================================================
# Validation errors
# =============================================================================


class ValidationError(LendingError):
    """Input rejected before any state was touched."""

    code: str = "VALIDATION_ERROR"


class ZeroAddress(ValidationError):
    """A required identity (borrower, lender, token, treasury) is empty."""

    code: str = "ZERO_ADDRESS"

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"{field} must not be empty")


class InvalidAmount(ValidationError):
    """Amount is zero, out of range, or not rounded to the accuracy factor."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, amount: int, reason: str = "invalid amount"):
        self.amount = amount
        self.reason = reason
        super().__init__(f"Invalid amount {amount}: {reason}")


class ArrayLengthMismatch(ValidationError):
    """Parallel input arrays have different lengths."""

    code: str = "ARRAY_LENGTH_MISMATCH"

    def __init__(self, *lengths: int):
        self.lengths = lengths
        super().__init__(f"Array lengths do not match: {list(lengths)}")


class LoanDurationOutOfRange(ValidationError):
    """Requested duration is outside the borrower's allowed range."""

    code: str = "LOAN_DURATION_OUT_OF_RANGE"

    def __init__(self, duration: int, min_duration: int, max_duration: int):
        self.duration = duration
        self.min_duration = min_duration
        self.max_duration = max_duration
        super().__init__(
            f"Duration {duration} outside [{min_duration}, {max_duration}] periods"
        )


DurationOutOfRange = LoanDurationOutOfRange


class ConfigurationExpired(ValidationError):
    """Borrower configuration expired before the request timestamp."""

    code: str = "CONFIGURATION_EXPIRED"

    def __init__(self, borrower: str, expiration: int, now: int):
        self.borrower = borrower
        self.expiration = expiration
        self.now = now
        super().__init__(
            f"Configuration for borrower {borrower} expired at {expiration} (now {now})"
        )


class InvalidBorrowerConfiguration(ValidationError):
    code: str = "INVALID_BORROWER_CONFIGURATION"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid borrower configuration: {reason}")


class InvalidCreditLineConfiguration(ValidationError):
    code: str = "INVALID_CREDIT_LINE_CONFIGURATION"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid credit line configuration: {reason}")


class InappropriateInterestRate(ValidationError):
    """Interest rates on an existing loan may only be lowered."""

    code: str = "INAPPROPRIATE_INTEREST_RATE"

    def __init__(self, loan_id: int, current_rate: int, new_rate: int):
        self.loan_id = loan_id
        self.current_rate = current_rate
        self.new_rate = new_rate
        super().__init__(
            f"Loan {loan_id}: new rate {new_rate} must be lower than {current_rate}"
        )


class DurationArrayInvalid(ValidationError):
    """Installment durations must be non-decreasing."""

    code: str = "DURATION_ARRAY_INVALID"

    def __init__(self, durations):
        self.durations = list(durations)
        super().__init__(f"Installment durations must be non-decreasing: {self.durations}")


# =============================================================================
# State errors
# =============================================================================


class StateError(LendingError):
    """The operation is not allowed in the current state."""

    code: str = "STATE_ERROR"


class InsufficientBalance(StateError):
    code: str = "INSUFFICIENT_BALANCE"

    def __init__(self, requested: int, available: int, bucket: str = "balance"):
        self.requested = requested
        self.available = available
        self.bucket = bucket
        super().__init__(
            f"Insufficient {bucket}: requested {requested}, available {available}"
        )


class InsufficientAllowance(StateError):
    code: str = "INSUFFICIENT_ALLOWANCE"

    def __init__(self, owner: str, spender: str, requested: int, allowance: int):
        self.owner = owner
        self.spender = spender
        self.requested = requested
        self.allowance = allowance
        super().__init__(
            f"Allowance of {spender} over {owner} is {allowance}, {requested} required"
        )


class AlreadyConfigured(StateError):
    code: str = "ALREADY_CONFIGURED"

    def __init__(self, what: str):
        self.what = what
        super().__init__(f"{what} is already configured")


class Unauthorized(StateError):
    """Caller lacks the role or relationship the operation requires."""

    code: str = "UNAUTHORIZED"

    def __init__(self, caller: Optional[str], required: str):
        self.caller = caller
        self.required = required
        super().__init__(f"Caller {caller!r} is not authorized: {required} required")


class OperationsPaused(StateError):
    code: str = "OPERATIONS_PAUSED"

    def __init__(self):
        super().__init__("Operations are paused")


class NotPaused(StateError):
    code: str = "NOT_PAUSED"

    def __init__(self):
        super().__init__("Operations are not paused")


class ReentrantCall(StateError):
    """A state-mutating call was re-entered before it completed."""

    code: str = "REENTRANT_CALL"

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Reentrant call into {operation}")


class LoanNotExist(StateError):
    code: str = "LOAN_NOT_EXIST"

    def __init__(self, loan_id: int):
        self.loan_id = loan_id
        super().__init__(f"Loan {loan_id} does not exist")


class LoanAlreadyRepaid(StateError):
    """Loan is settled or revoked and accepts no further lifecycle calls."""

    code: str = "LOAN_ALREADY_REPAID"

    def __init__(self, loan_id: int):
        self.loan_id = loan_id
        super().__init__(f"Loan {loan_id} is already repaid or revoked")


class LoanAlreadyFrozen(StateError):
    code: str = "LOAN_ALREADY_FROZEN"

    def __init__(self, loan_id: int):
        self.loan_id = loan_id
        super().__init__(f"Loan {loan_id} is already frozen")


class LoanNotFrozen(StateError):
    code: str = "LOAN_NOT_FROZEN"

    def __init__(self, loan_id: int):
        self.loan_id = loan_id
        super().__init__(f"Loan {loan_id} is not frozen")


class CooldownPeriodHasPassed(StateError):
    code: str = "COOLDOWN_PERIOD_HAS_PASSED"

    def __init__(self, loan_id: int, start_period: int, current_period: int, cooldown: int):
        self.loan_id = loan_id
        self.start_period = start_period
        self.current_period = current_period
        self.cooldown = cooldown
        super().__init__(
            f"Loan {loan_id} cannot be revoked: started in period {start_period}, "
            f"now {current_period}, cooldown {cooldown} periods"
        )


class LoanTypeUnexpected(StateError):
    """Operation does not apply to a standalone or an installment loan."""

    code: str = "LOAN_TYPE_UNEXPECTED"

    def __init__(self, loan_id: int, expected: str):
        self.loan_id = loan_id
        self.expected = expected
        super().__init__(f"Loan {loan_id} is not {expected}")


class ProgramNotExist(StateError):
    code: str = "PROGRAM_NOT_EXIST"

    def __init__(self, program_id: int):
        self.program_id = program_id
        super().__init__(f"Program {program_id} does not exist")


class CreditLineNotExist(StateError):
    code: str = "CREDIT_LINE_NOT_EXIST"

    def __init__(self, credit_line_id: str):
        self.credit_line_id = credit_line_id
        super().__init__(f"Credit line {credit_line_id} does not exist")


class PoolNotExist(StateError):
    code: str = "POOL_NOT_EXIST"

    def __init__(self, pool_id: str):
        self.pool_id = pool_id
        super().__init__(f"Liquidity pool {pool_id} does not exist")


class AddonModeChangeForbidden(StateError):
    """Addon handling may only move from retention to transfer."""

    code: str = "ADDON_MODE_CHANGE_FORBIDDEN"

    def __init__(self, pool_id: str, current: str, requested: str):
        self.pool_id = pool_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Pool {pool_id}: addon mode cannot change from {current} to {requested}"
        )


# =============================================================================
# Arithmetic errors
# =============================================================================


class LendingArithmeticError(LendingError):
    """Fixed-point or formula failure. Never clamped, always fatal."""

    code: str = "ARITHMETIC_ERROR"


class FixedPointOverflow(LendingArithmeticError):
    code: str = "FIXED_POINT_OVERFLOW"

    def __init__(self, operation: str, value: Optional[int] = None):
        self.operation = operation
        self.value = value
        super().__init__(f"Fixed-point overflow in {operation}")


class DivisionByZero(LendingArithmeticError):
    code: str = "DIVISION_BY_ZERO"

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Division by zero in {operation}")


class FormulaNotImplemented(LendingArithmeticError):
    code: str = "FORMULA_NOT_IMPLEMENTED"

    def __init__(self, formula):
        self.formula = formula
        super().__init__(f"Interest formula {formula!r} is not implemented")


# =============================================================================
# External call errors
# =============================================================================


class ExternalCallError(LendingError):
    code: str = "EXTERNAL_CALL_ERROR"


class TransferFailed(ExternalCallError):
    """Token transfer reverted; the enclosing operation is aborted."""

    code: str = "TRANSFER_FAILED"

    def __init__(self, token: str, sender: str, recipient: str, amount: int, reason: str):
        self.token = token
        self.sender = sender
        self.recipient = recipient
        self.amount = amount
        self.reason = reason
        super().__init__(
            f"Transfer of {amount} {token} from {sender} to {recipient} failed: {reason}"
        )
