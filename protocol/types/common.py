from enum import Enum
from typing import Any, Dict, Optional

class OpType(str, Enum):
    STAKE = "STAKE"
    WITHDRAW = "WITHDRAW"
    GET_REWARD = "GET_REWARD"
    EXIT = "EXIT"

    # Delayed withdrawal
    REQUEST_WITHDRAWAL = "REQUEST_WITHDRAWAL"
    CANCEL_WITHDRAWAL = "CANCEL_WITHDRAWAL"
    COMPLETE_WITHDRAWAL = "COMPLETE_WITHDRAWAL"

    # Operator only
    SET_ANNUAL_RATE = "SET_ANNUAL_RATE"
    SET_WAIT_DURATION = "SET_WAIT_DURATION"
    EMERGENCY_WITHDRAW = "EMERGENCY_WITHDRAW"

class InterestModel(str, Enum):
    LINEAR = "LINEAR"       # simple interest on principal
    COMPOUND = "COMPOUND"   # interest folded into the virtual balance every tick

class Role(str, Enum):
    ADMIN = "ADMIN"         # may grant and revoke roles
    OPERATOR = "OPERATOR"   # may act for any account and change pool policy

class ProtocolError(Exception):
    pass

class ValidationError(ProtocolError, ValueError):
    """
    Precondition violation. The whole call is rejected and no state changes.

    `reason` is a short machine-readable code, the message is for humans.
    """

    def __init__(self, reason: str, message: Optional[str] = None, **details: Any):
        self.reason = reason
        self.details: Dict[str, Any] = details
        super().__init__(message or reason)

class Unauthorized(ValidationError):
    def __init__(self, message: Optional[str] = None, **details: Any):
        super().__init__("unauthorized", message, **details)

class ArithmeticInvariantError(ProtocolError, ArithmeticError):
    """Underflow, overflow or division by zero. Indicates a broken invariant."""
    pass

class ReentrancyError(ProtocolError):
    pass

class TransferError(ProtocolError):
    pass
