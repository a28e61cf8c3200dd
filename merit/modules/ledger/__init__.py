from merit.modules.ledger.history import LedgerHistory
from merit.modules.ledger.service import LedgerService, TransactionPage

__all__ = ["LedgerHistory", "LedgerService", "TransactionPage"]
