"""
operations - Pure transition functions for the instrument ledger.

Each compute_* function takes a LedgerView and the caller, and returns a
PendingTransition or raises the LedgerError of the first failed check.
"""

from .instruments import (
    OWNER_SETTABLE_STATUSES,
    compute_register_instrument,
    compute_update_instrument_status,
    is_instrument_available,
)
from .payments import (
    compute_deposit,
    compute_purchase_instrument,
    compute_process_refund,
)
from .rentals import (
    OPEN_RENTAL_STATUSES,
    compute_rental_cost,
    compute_rental_expiry,
    validate_rental_period,
    check_rental_expiry,
    compute_rent_instrument,
    compute_extend_rental,
    compute_return_instrument,
    find_expired_rentals,
    compute_mark_overdue_rentals,
    is_rental_active,
    get_rental_cost,
)

__all__ = [
    'OWNER_SETTABLE_STATUSES', 'compute_register_instrument',
    'compute_update_instrument_status', 'is_instrument_available',
    'compute_deposit', 'compute_purchase_instrument', 'compute_process_refund',
    'OPEN_RENTAL_STATUSES', 'compute_rental_cost', 'compute_rental_expiry',
    'validate_rental_period', 'check_rental_expiry', 'compute_rent_instrument', 'compute_extend_rental',
    'compute_return_instrument', 'find_expired_rentals',
    'compute_mark_overdue_rentals', 'is_rental_active', 'get_rental_cost',
]
