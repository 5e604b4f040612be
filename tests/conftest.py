"""
Shared fixtures: a fully wired lending system (in-memory storage unless a
backend is passed in) with a controllable clock, one credit line, one funded
pool and one program.
"""

import pytest
from dataclasses import dataclass

from lending_core.access import Role
from lending_core.config import LendingConfig
from lending_core.credit import BorrowerConfig, BorrowPolicy, CreditLineConfig
from lending_core.storage import InMemoryStorage
from lending_core.system import LendingSystem


OWNER = "owner"
ADMIN = "admin"
LENDER = "lender"
BORROWER = "borrower"
TOKEN = "USDX"

PERIOD = 86400
# Start of period 20000 with the default three hour offset
START = 3 * 3600 + PERIOD * 20000

RATE_FACTOR = 10 ** 9
PRIMARY_RATE = 10 ** 7       # 1% per period
SECONDARY_RATE = 2 * 10 ** 7  # 2% per period
POOL_DEPOSIT = 1_000_000


class FakeClock:
    """Settable clock returning integer timestamps"""
    
    def __init__(self, now: int):
        self.now = now
    
    def __call__(self) -> int:
        return self.now
    
    def advance_periods(self, periods: int) -> None:
        self.now += periods * PERIOD


@dataclass
class LendingEnv:
    system: LendingSystem
    clock: FakeClock
    credit_line_id: str
    pool_id: str
    program_id: int
    
    @property
    def ledger(self):
        return self.system.ledger
    
    @property
    def pools(self):
        return self.system.pool_accountant
    
    @property
    def credit(self):
        return self.system.credit_engine
    
    @property
    def tokens(self):
        return self.system.tokens
    
    def configure_borrower(self, borrower: str = BORROWER, **overrides) -> BorrowerConfig:
        values = dict(
            expiration=self.clock.now + 365 * PERIOD,
            min_borrow_amount=1,
            max_borrow_amount=10_000,
            min_duration_in_periods=1,
            max_duration_in_periods=100,
            interest_rate_primary=PRIMARY_RATE,
            interest_rate_secondary=SECONDARY_RATE,
            borrow_policy=BorrowPolicy.KEEP,
        )
        values.update(overrides)
        config = BorrowerConfig(**values)
        self.credit.configure_borrower(ADMIN, self.credit_line_id, borrower, config)
        return config
    
    def borrowable(self) -> int:
        return self.pools.get_balances(self.pool_id)[0]
    
    def addons(self) -> int:
        return self.pools.get_balances(self.pool_id)[1]


def build_env(storage=None, **config_overrides) -> LendingEnv:
    values = dict(accuracy_factor=1, interest_rate_factor=RATE_FACTOR,
                  cooldown_in_periods=3, use_sqlite=False)
    values.update(config_overrides)
    config = LendingConfig(**values)
    clock = FakeClock(START)
    if storage is None:
        storage = InMemoryStorage()
    system = LendingSystem(storage=storage, config=config, clock=clock, owner=OWNER)
    
    system.access.grant_role(OWNER, ADMIN, Role.ADMIN)
    system.access.grant_role(OWNER, OWNER, Role.PAUSER)
    
    credit_line = system.credit_engine.create_credit_line(OWNER, LENDER, TOKEN)
    system.credit_engine.configure_credit_line(OWNER, credit_line.id, CreditLineConfig(
        min_borrow_amount=1,
        max_borrow_amount=10 ** 12,
        min_duration_in_periods=1,
        max_duration_in_periods=365,
        min_interest_rate_primary=0,
        max_interest_rate_primary=RATE_FACTOR,
        min_interest_rate_secondary=0,
        max_interest_rate_secondary=RATE_FACTOR,
        min_addon_fixed_rate=0,
        max_addon_fixed_rate=10 ** 8,
        min_addon_period_rate=0,
        max_addon_period_rate=10 ** 6,
    ))
    
    pool = system.pool_accountant.create_pool(OWNER, LENDER, TOKEN)
    system.tokens.mint(TOKEN, LENDER, 10 * POOL_DEPOSIT)
    system.pool_accountant.deposit(LENDER, pool.id, POOL_DEPOSIT)
    
    program = system.ledger.create_program(LENDER, credit_line.id, pool.id)
    return LendingEnv(system, clock, credit_line.id, pool.id, program.id)


@pytest.fixture
def env() -> LendingEnv:
    environment = build_env()
    environment.configure_borrower()
    return environment
