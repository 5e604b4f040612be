"""
Token Transfer Module

The lending core moves funds only through TokenTransferInterface, an
all-or-nothing primitive: a transfer either completes or raises and the
enclosing operation is aborted.

StorageTokenLedger keeps balances and allowances in the same storage as the
loan and pool records, so a rolled back ``atomic()`` block also undoes the
transfers made inside it.
"""

from abc import ABC, abstractmethod

from .exceptions import TransferFailed, InsufficientAllowance, InvalidAmount, ZeroAddress
from .storage import StorageInterface


class TokenTransferInterface(ABC):
    """Token movement primitive consumed by the lending core"""
    
    @abstractmethod
    def transfer(self, token: str, sender: str, recipient: str, amount: int) -> None:
        """Move amount of token from sender to recipient or raise TransferFailed"""
        pass
    
    @abstractmethod
    def transfer_from(self, token: str, spender: str, sender: str, recipient: str, amount: int) -> None:
        """Move funds on behalf of sender using spender's allowance"""
        pass
    
    @abstractmethod
    def approve(self, token: str, owner: str, spender: str, amount: int) -> None:
        """Set spender's allowance over owner's funds"""
        pass
    
    @abstractmethod
    def balance_of(self, token: str, account: str) -> int:
        pass
    
    @abstractmethod
    def allowance(self, token: str, owner: str, spender: str) -> int:
        pass


class StorageTokenLedger(TokenTransferInterface):
    """Token balances kept in a StorageInterface"""
    
    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.balances_table = "token_balances"
        self.allowances_table = "token_allowances"
    
    def balance_of(self, token: str, account: str) -> int:
        record = self.storage.load(self.balances_table, f"{token}:{account}")
        return record["amount"] if record else 0
    
    def allowance(self, token: str, owner: str, spender: str) -> int:
        record = self.storage.load(self.allowances_table, f"{token}:{owner}:{spender}")
        return record["amount"] if record else 0
    
    def mint(self, token: str, account: str, amount: int) -> None:
        """Credit new funds to account (test and bootstrap helper)"""
        if amount < 0:
            raise InvalidAmount(amount, "mint amount must be non-negative")
        self._set_balance(token, account, self.balance_of(token, account) + amount)
    
    def approve(self, token: str, owner: str, spender: str, amount: int) -> None:
        if not owner or not spender:
            raise ZeroAddress("owner" if not owner else "spender")
        if amount < 0:
            raise InvalidAmount(amount, "allowance must be non-negative")
        self.storage.save(self.allowances_table, f"{token}:{owner}:{spender}", {
            "token": token, "owner": owner, "spender": spender, "amount": amount
        })
    
    def transfer(self, token: str, sender: str, recipient: str, amount: int) -> None:
        if not token or not sender or not recipient:
            raise TransferFailed(token, sender, recipient, amount, "empty address")
        if amount < 0:
            raise TransferFailed(token, sender, recipient, amount, "negative amount")
        if amount == 0:
            return
        
        sender_balance = self.balance_of(token, sender)
        if sender_balance < amount:
            raise TransferFailed(
                token, sender, recipient, amount,
                f"insufficient balance {sender_balance}"
            )
        with self.storage.atomic():
            self._set_balance(token, sender, sender_balance - amount)
            self._set_balance(token, recipient, self.balance_of(token, recipient) + amount)
    
    def transfer_from(self, token: str, spender: str, sender: str, recipient: str, amount: int) -> None:
        current = self.allowance(token, sender, spender)
        if current < amount:
            raise InsufficientAllowance(sender, spender, amount, current)
        with self.storage.atomic():
            self.approve(token, sender, spender, current - amount)
            self.transfer(token, sender, recipient, amount)
    
    def _set_balance(self, token: str, account: str, amount: int) -> None:
        self.storage.save(self.balances_table, f"{token}:{account}", {
            "token": token, "account": account, "amount": amount
        })
