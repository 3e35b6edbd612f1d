"""Infrastructure layer - wire format and HTTP execution"""

from .http_executor import ActionExecutor, ActionResult, ResultKind
from .wire import GameSnapshot, HandState, HandStatus, ResponseFields, WireAction

__all__ = [
    "ActionExecutor",
    "ActionResult",
    "ResultKind",
    "GameSnapshot",
    "HandState",
    "HandStatus",
    "ResponseFields",
    "WireAction",
]
