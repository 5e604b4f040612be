"""
Lending System Wiring

Builds every component of the lending core over one shared storage.
"""

from typing import Callable, Optional

from .storage import StorageInterface, create_storage
from .access import RoleRegistry, PauseControl
from .tokens import StorageTokenLedger
from .credit import CreditPolicyEngine
from .pools import PoolAccountant
from .loans import LoanLedger
from .installments import InstallmentAggregator
from .config import LendingConfig, get_config


class LendingSystem:
    """Lending core with all components initialized"""
    
    def __init__(
        self,
        storage: Optional[StorageInterface] = None,
        config: Optional[LendingConfig] = None,
        clock: Optional[Callable[[], int]] = None,
        owner: Optional[str] = None
    ):
        self.config = config or get_config()
        self.storage = storage or create_storage(self.config.database_url, self.config.use_sqlite)
        
        self.access = RoleRegistry(self.storage, owner=owner)
        self.pause_control = PauseControl(self.storage, self.access)
        self.tokens = StorageTokenLedger(self.storage)
        
        self.credit_engine = CreditPolicyEngine(self.storage, self.access, self.config)
        self.pool_accountant = PoolAccountant(self.storage, self.access, self.tokens, self.config)
        self.ledger = LoanLedger(
            self.storage, self.credit_engine, self.pool_accountant, self.tokens,
            self.access, self.pause_control, self.config, clock=clock
        )
        self.installments = InstallmentAggregator(self.ledger)
