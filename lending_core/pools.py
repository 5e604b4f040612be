"""
Liquidity Pool Accounting Module

Tracks the funding side of every loan: the borrowable balance available to
lend and the addon balance collected as fees. Balances are kept per pool,
or per credit line inside a pool when ``track_credit_line_balances`` is
enabled.

Addon handling per pool:
- RETENTION: addons stay in the pool's ``addons`` bucket until withdrawn.
- TRANSFER: addons go to an external treasury on loan take and are pulled
  back (through the treasury's allowance) on revocation.
A pool may switch from RETENTION to TRANSFER but never back.

The pool holds its tokens under its own id in the token ledger.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple
from enum import Enum

from .storage import StorageInterface, StorageRecord
from .access import AccessController, Role
from .tokens import TokenTransferInterface
from .config import LendingConfig, get_config
from .logging_config import get_logger, log_action
from .exceptions import (
    ZeroAddress, InvalidAmount, InsufficientBalance, AlreadyConfigured,
    AddonModeChangeForbidden, PoolNotExist, Unauthorized
)


logger = get_logger("lending.pools")


class AddonMode(Enum):
    """Where addon fees rest after a loan is taken"""
    RETENTION = "retention"
    TRANSFER = "transfer"


@dataclass
class LiquidityPool(StorageRecord):
    """A lender's pool of capital in one token"""
    id: str
    lender: str
    token: str
    addon_mode: AddonMode = AddonMode.RETENTION
    addon_treasury: str = ""
    
    _enum_fields = {"addon_mode": AddonMode}


@dataclass
class PoolBalance(StorageRecord):
    """Borrowable and addon balances of a pool or one of its credit lines"""
    pool_id: str
    credit_line_id: str = ""
    borrowable: int = 0
    addons: int = 0


class PoolAccountant:
    """
    Owns pool balances; loan hooks are driven by LoanLedger only
    """
    
    def __init__(
        self,
        storage: StorageInterface,
        access: AccessController,
        tokens: TokenTransferInterface,
        config: Optional[LendingConfig] = None
    ):
        self.storage = storage
        self.access = access
        self.tokens = tokens
        self.config = config or get_config()
        
        self.pools_table = "pools"
        self.balances_table = "pool_balances"
    
    # ------------------------------------------------------------------
    # Pools
    # ------------------------------------------------------------------
    
    def create_pool(self, caller: str, lender: str, token: str) -> LiquidityPool:
        """Register a pool for lender; caller must be an owner"""
        self.access.require_role(caller, Role.OWNER)
        if not lender:
            raise ZeroAddress("lender")
        if not token:
            raise ZeroAddress("token")
        
        pool = LiquidityPool(
            id=f"pool-{self.storage.next_id('pools')}",
            lender=lender,
            token=token
        )
        with self.storage.atomic():
            self._save_pool(pool)
            self._save_balance(PoolBalance(pool_id=pool.id))
        
        log_action(logger, "info", f"Created liquidity pool {pool.id}",
                   user_id=caller, action="pool.created", resource=f"pool:{pool.id}",
                   extra={"lender": lender, "token": token})
        return pool
    
    def get_pool(self, pool_id: str) -> LiquidityPool:
        data = self.storage.load(self.pools_table, pool_id)
        if not data:
            raise PoolNotExist(pool_id)
        return LiquidityPool.from_dict(data)
    
    def set_addon_treasury(self, caller: str, pool_id: str, treasury: str) -> None:
        """
        Route addons of new loans to treasury, switching the pool to TRANSFER.
        
        Raises:
            AddonModeChangeForbidden: treasury is empty on a TRANSFER pool
            ZeroAddress: treasury is empty on a RETENTION pool
            AlreadyConfigured: treasury is unchanged
        """
        pool = self.get_pool(pool_id)
        self._require_owner(caller, pool)
        if not treasury:
            if pool.addon_mode == AddonMode.TRANSFER:
                raise AddonModeChangeForbidden(
                    pool_id, AddonMode.TRANSFER.value, AddonMode.RETENTION.value
                )
            raise ZeroAddress("addon treasury")
        if treasury == pool.addon_treasury:
            raise AlreadyConfigured(f"addon treasury of pool {pool_id}")
        
        pool.addon_mode = AddonMode.TRANSFER
        pool.addon_treasury = treasury
        self._save_pool(pool)
        log_action(logger, "info", f"Pool {pool_id} addon treasury set to {treasury}",
                   user_id=caller, action="pool.addon_treasury_changed", resource=f"pool:{pool_id}")
    
    # ------------------------------------------------------------------
    # Balances
    # ------------------------------------------------------------------
    
    def get_balances(self, pool_id: str) -> Tuple[int, int]:
        """(borrowable, addons) across the whole pool"""
        self.get_pool(pool_id)
        records = self.storage.find(self.balances_table, {"pool_id": pool_id})
        return (
            sum(record["borrowable"] for record in records),
            sum(record["addons"] for record in records)
        )
    
    def get_credit_line_balance(self, pool_id: str, credit_line_id: str) -> Tuple[int, int]:
        """(borrowable, addons) of one credit line, or of the pool when not tracked separately"""
        balance = self._load_balance(pool_id, credit_line_id)
        return balance.borrowable, balance.addons
    
    def deposit(self, caller: str, pool_id: str, amount: int, credit_line_id: Optional[str] = None) -> None:
        """Move amount from caller into the pool's borrowable balance"""
        pool = self.get_pool(pool_id)
        self._require_owner(caller, pool)
        if amount <= 0:
            raise InvalidAmount(amount, "deposit amount must be positive")
        
        with self.storage.atomic():
            balance = self._load_balance(pool_id, credit_line_id)
            balance.borrowable += amount
            self._save_balance(balance)
            self.tokens.transfer(pool.token, caller, pool.id, amount)
        
        log_action(logger, "info", f"Deposited {amount} into {pool_id}",
                   user_id=caller, action="pool.deposit", resource=f"pool:{pool_id}",
                   extra={"amount": amount, "credit_line_id": credit_line_id})
    
    def withdraw(
        self,
        caller: str,
        pool_id: str,
        borrowable_amount: int,
        addon_amount: int,
        credit_line_id: Optional[str] = None
    ) -> None:
        """
        Withdraw from both buckets atomically.
        
        Raises:
            InvalidAmount: both amounts are zero
            InsufficientBalance: either amount exceeds its bucket; neither
                bucket changes
        """
        pool = self.get_pool(pool_id)
        self._require_owner(caller, pool)
        if borrowable_amount < 0 or addon_amount < 0:
            raise InvalidAmount(min(borrowable_amount, addon_amount), "amounts must be non-negative")
        if borrowable_amount == 0 and addon_amount == 0:
            raise InvalidAmount(0, "nothing to withdraw")
        
        balance = self._load_balance(pool_id, credit_line_id)
        if borrowable_amount > balance.borrowable:
            raise InsufficientBalance(borrowable_amount, balance.borrowable, "borrowable balance")
        if addon_amount > balance.addons:
            raise InsufficientBalance(addon_amount, balance.addons, "addon balance")
        
        with self.storage.atomic():
            balance.borrowable -= borrowable_amount
            balance.addons -= addon_amount
            self._save_balance(balance)
            self.tokens.transfer(pool.token, pool.id, caller, borrowable_amount + addon_amount)
        
        log_action(logger, "info", f"Withdrew {borrowable_amount}/{addon_amount} from {pool_id}",
                   user_id=caller, action="pool.withdraw", resource=f"pool:{pool_id}",
                   extra={"borrowable_amount": borrowable_amount, "addon_amount": addon_amount})
    
    def rescue(self, caller: str, pool_id: str, token: str, amount: int) -> None:
        """Send tokens held by the pool but outside its accounting to caller"""
        pool = self.get_pool(pool_id)
        self._require_owner(caller, pool)
        if not token:
            raise ZeroAddress("token")
        if amount <= 0:
            raise InvalidAmount(amount, "rescue amount must be positive")
        self.tokens.transfer(token, pool.id, caller, amount)
        log_action(logger, "warning", f"Rescued {amount} {token} from {pool_id}",
                   user_id=caller, action="pool.rescue", resource=f"pool:{pool_id}")
    
    # ------------------------------------------------------------------
    # Loan hooks
    # ------------------------------------------------------------------
    
    def on_before_loan_taken(self, loan) -> str:
        """
        Debit borrow + addon from the borrowable balance and book the addon.
        
        Only balances change here; the caller sends the addon to the
        returned treasury once the rest of its state is saved.
        
        Returns:
            The treasury the addon goes to, or "" when retained
        """
        pool = self.get_pool(loan.pool_id)
        balance = self._load_balance(pool.id, loan.credit_line_id)
        required = loan.borrow_amount + loan.addon_amount
        if required > balance.borrowable:
            raise InsufficientBalance(required, balance.borrowable, "borrowable balance")
        
        balance.borrowable -= required
        if pool.addon_mode == AddonMode.RETENTION:
            balance.addons += loan.addon_amount
            self._save_balance(balance)
            return ""
        
        self._save_balance(balance)
        return pool.addon_treasury
    
    def on_after_loan_payment(self, loan, repay_amount: int) -> None:
        """Credit the repaid amount back to the borrowable balance"""
        balance = self._load_balance(loan.pool_id, loan.credit_line_id)
        balance.borrowable += repay_amount
        self._save_balance(balance)
    
    def on_after_loan_revocation(self, loan) -> None:
        """
        Reverse the loan's effect on the pool.
        
        The borrowable balance changes by ``borrow - repaid + addon``. The
        correction is negative when the borrower repaid more than borrowed;
        the addon returns from the addon bucket. A loan whose addon went to a
        treasury is only credited here; the caller pulls the addon back with
        ``recover_addon`` after its own state is saved.
        """
        pool = self.get_pool(loan.pool_id)
        balance = self._load_balance(pool.id, loan.credit_line_id)
        correction = loan.borrow_amount - loan.repaid_amount
        
        new_borrowable = balance.borrowable + correction + loan.addon_amount
        if new_borrowable < 0:
            raise InsufficientBalance(-correction, balance.borrowable + loan.addon_amount, "borrowable balance")
        balance.borrowable = new_borrowable
        
        if loan.addon_treasury:
            self._save_balance(balance)
            return
        
        if loan.addon_amount > balance.addons:
            raise InsufficientBalance(loan.addon_amount, balance.addons, "addon balance")
        balance.addons -= loan.addon_amount
        self._save_balance(balance)
    
    def send_addon(self, loan) -> None:
        """Move a taken loan's addon from the pool to its treasury"""
        if loan.addon_treasury:
            self.tokens.transfer(loan.token, loan.pool_id, loan.addon_treasury, loan.addon_amount)
    
    def recover_addon(self, loan) -> None:
        """Pull a revoked loan's addon back from its treasury using the pool's allowance"""
        if loan.addon_treasury:
            self.tokens.transfer_from(
                loan.token, loan.pool_id, loan.addon_treasury, loan.pool_id, loan.addon_amount
            )
    
    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    
    def _require_owner(self, caller: str, pool: LiquidityPool) -> None:
        if caller and caller == pool.lender:
            return
        if not self.access.caller_has_role(caller, Role.OWNER):
            raise Unauthorized(caller, f"owner of pool {pool.id}")
    
    def _balance_key(self, pool_id: str, credit_line_id: Optional[str]) -> Tuple[str, str]:
        if self.config.track_credit_line_balances and credit_line_id:
            return f"{pool_id}:{credit_line_id}", credit_line_id
        return pool_id, ""
    
    def _load_balance(self, pool_id: str, credit_line_id: Optional[str]) -> PoolBalance:
        key, tracked_credit_line = self._balance_key(pool_id, credit_line_id)
        data = self.storage.load(self.balances_table, key)
        if data:
            return PoolBalance.from_dict(data)
        self.get_pool(pool_id)
        return PoolBalance(pool_id=pool_id, credit_line_id=tracked_credit_line)
    
    def _save_balance(self, balance: PoolBalance) -> None:
        key, _ = self._balance_key(balance.pool_id, balance.credit_line_id)
        self.storage.save(self.balances_table, key, balance.to_dict())
    
    def _save_pool(self, pool: LiquidityPool) -> None:
        self.storage.save(self.pools_table, pool.id, pool.to_dict())
    
    def list_pools(self) -> List[LiquidityPool]:
        return [LiquidityPool.from_dict(data) for data in self.storage.load_all(self.pools_table)]
