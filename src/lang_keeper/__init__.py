from .context import ExtractQuery, FixQuery, LangContext, ModifyQuery
from .engine import LangKeeper
from .models import ExecutionResult, ResultCode

__version__ = "0.1.0"

__all__ = [
    "ExtractQuery",
    "FixQuery",
    "LangContext",
    "LangKeeper",
    "ModifyQuery",
    "ExecutionResult",
    "ResultCode",
    "__version__",
]
