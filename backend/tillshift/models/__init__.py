from .shifts import (
    Shift,
    CashMovement,
    ShiftStatus,
    MovementType,
    TERMINAL_STATUSES,
    ImmutableLedgerError,
)

__all__ = [
    'Shift', 'CashMovement',
    'ShiftStatus', 'MovementType', 'TERMINAL_STATUSES',
    'ImmutableLedgerError',
]
