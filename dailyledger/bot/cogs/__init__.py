from .export import ExportCog
from .general import GeneralCog
from .ledger import LedgerCog
from .lists import ListsCog
from .members import MembersCog
from .stats import StatsCog

__all__ = [
    "ExportCog",
    "GeneralCog",
    "LedgerCog",
    "ListsCog",
    "MembersCog",
    "StatsCog",
]
