from .client import SpoeClient
from .config import Params, load_params
from .document import SECTION_TYPES, ConfigDocument
from .errors import *  # noqa: F401,F403
from .errors import __all__ as _error_names
from .transactions import Explicit, Implicit, Transaction, TransactionManager

__version__ = "0.1.0"

__all__ = [
    "SpoeClient",
    "Params",
    "load_params",
    "ConfigDocument",
    "SECTION_TYPES",
    "Explicit",
    "Implicit",
    "Transaction",
    "TransactionManager",
    *_error_names,
]
