"""
SQLAlchemy ORM models package.

All models are imported here so that:
  1. Base.metadata knows every table before create_all() runs
  2. Other modules can import from tmc_ledger.models directly
"""

from tmc_ledger.models.user import User, UserRole  # noqa: F401
from tmc_ledger.models.account import Account, AccountRole, PLATFORM_ACCOUNT_ID  # noqa: F401
from tmc_ledger.models.transaction import Transaction, TransactionType  # noqa: F401
from tmc_ledger.models.credit_package import CreditPackage  # noqa: F401
from tmc_ledger.models.purchase_order import PurchaseOrder, OrderStatus  # noqa: F401
from tmc_ledger.models.commission_link import CommissionLink  # noqa: F401
from tmc_ledger.models.function_cost import FunctionCost  # noqa: F401
