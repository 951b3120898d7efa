"""
Balance Kernel

The transactional core of the balance tracker:
- Money values with a "<decimal>|<currency>" storage codec
- Payee registry with case-insensitive find-or-create
- Payment periods whose ending balance is always derived from their items
- All-or-nothing period and item operations
"""

__version__ = "0.1.0"
