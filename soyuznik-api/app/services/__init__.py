from app.services.access_status import (
    AccessStatus,
    InvalidTransitionError,
    activate,
    can_transition,
    confirm_payment,
    transition,
)
from app.services.result import Result
