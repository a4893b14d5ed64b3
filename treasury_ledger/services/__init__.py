"""Business logic services."""

from treasury_ledger.services.ledger_service import LedgerService
from treasury_ledger.services.account_service import TreasuryAccountService
from treasury_ledger.services.event_service import FinancialEventService

__all__ = ["LedgerService", "TreasuryAccountService", "FinancialEventService"]
