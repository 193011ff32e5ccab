from engine.controller import LedgerController
from engine.stats import LedgerStats

__all__ = ["LedgerController", "LedgerStats"]
