from .operation import (
    Idle,
    InFlight,
    Succeeded,
    Failed,
    OperationState,
    OperationSlot,
)
