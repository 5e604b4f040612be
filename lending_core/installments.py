"""
Installment Loan Aggregation

An installment loan is a contiguous range of loan records sharing one
origination. The aggregator sums the per-installment previews into one
logical view.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from .loans import LoanLedger, LoanPreview


@dataclass
class InstallmentLoanPreview:
    """Aggregate balances of an installment loan as of a timestamp"""
    first_installment_id: int
    installment_count: int
    period_index: int
    total_tracked_balance: int
    total_outstanding_balance: int
    installment_previews: List[LoanPreview] = field(default_factory=list)


class InstallmentAggregator:
    """Read-only view over installment groups kept by a LoanLedger"""
    
    def __init__(self, ledger: LoanLedger):
        self.ledger = ledger
    
    def get_installment_preview(self, loan_id: int, timestamp: Optional[int] = None) -> InstallmentLoanPreview:
        """
        Preview the installment group containing loan_id.
        
        A standalone loan yields a single-element aggregate with an
        installment count of zero.
        """
        if timestamp is None:
            timestamp = self.ledger.clock()
        
        loan_ids = self.ledger.get_installment_ids(loan_id)
        previews = [self.ledger.get_loan_preview(member_id, timestamp) for member_id in loan_ids]
        first = self.ledger.get_loan_state(loan_ids[0])
        
        return InstallmentLoanPreview(
            first_installment_id=loan_ids[0],
            installment_count=first.installment_count,
            period_index=previews[0].period_index,
            total_tracked_balance=sum(preview.tracked_balance for preview in previews),
            total_outstanding_balance=sum(preview.outstanding_balance for preview in previews),
            installment_previews=previews
        )
