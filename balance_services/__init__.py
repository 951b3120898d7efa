"""
balance_services -- Package init and public API.

Responsibility:
    Orchestration over the kernel for external collaborators: the
    ``BalanceTracker`` facade (one transaction per call, bounded retry of
    transient store failures) and calling-layer policies such as the
    ordering of replacement item lists posted by a form.

Architecture position:
    Services -- above ``balance_kernel`` and ``balance_config``.

    Dependency direction (enforced by tests/architecture/test_kernel_boundary.py):
        balance_services/ -> balance_kernel/   (allowed)
        balance_services/ -> balance_config/   (allowed)
        balance_kernel/   -> balance_services/ (FORBIDDEN)
        balance_kernel/   -> balance_config/   (FORBIDDEN)
"""

from balance_services.item_ordering import ReplacementEntry, order_replacement_items
from balance_services.retry import run_with_retry
from balance_services.tracker import BalanceTracker

__all__ = [
    "BalanceTracker",
    "ReplacementEntry",
    "order_replacement_items",
    "run_with_retry",
]
