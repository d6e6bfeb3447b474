"""
Petty Cash Kernel

The expense-claim workflow core:
- Receipt lifecycle state machine (submitted -> admin -> HOD -> paid)
- Derived float ledger (no stored balances)
- Top-up batch aggregation with line-item rejection
- Append-only activity log
- Read-only analytics rollups
"""

__version__ = "0.1.0"
