from .access_control import AccessControlFacade
from .base import GAS_LIMITS, ContractFacade
from .credit_registry import CreditRegistryFacade
from .loan_registry import LoanRegistryFacade
from .payment_ledger import PaymentLedgerFacade

__all__ = [
    "AccessControlFacade",
    "ContractFacade",
    "CreditRegistryFacade",
    "GAS_LIMITS",
    "LoanRegistryFacade",
    "PaymentLedgerFacade",
]
