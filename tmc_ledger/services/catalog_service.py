"""
Catalog service — the credit packages users can buy.
"""

import uuid
from decimal import Decimal, InvalidOperation

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tmc_ledger.config import settings
from tmc_ledger.exceptions import LedgerValidationError, PackageNotFoundError
from tmc_ledger.models.credit_package import CreditPackage


async def list_packages(db: AsyncSession) -> list[CreditPackage]:
    """Active packages in display order."""
    result = await db.execute(
        select(CreditPackage)
        .where(CreditPackage.is_active.is_(True))
        .order_by(CreditPackage.display_order, CreditPackage.credits)
    )
    return list(result.scalars().all())


async def get_package(db: AsyncSession, package_id: uuid.UUID) -> CreditPackage:
    """
    Raises:
        PackageNotFoundError: If the package doesn't exist or is inactive.
    """
    result = await db.execute(select(CreditPackage).where(CreditPackage.id == package_id))
    package = result.scalar_one_or_none()
    if package is None or not package.is_active:
        raise PackageNotFoundError(package_id)
    return package


def normalize_price(price: str) -> str:
    """Validate a decimal price string and return it with two places."""
    try:
        value = Decimal(price)
    except InvalidOperation as exc:
        raise LedgerValidationError(f"Invalid price {price!r}") from exc
    if not value.is_finite() or value <= 0:
        raise LedgerValidationError(f"Price must be positive, got {price!r}")
    return str(value.quantize(Decimal("0.01")))


async def create_package(
    db: AsyncSession,
    name: str,
    credits: int,
    price: str,
    bonus_credits: int = 0,
    currency: str | None = None,
    description: str | None = None,
    is_promotional: bool = False,
    display_order: int = 0,
) -> CreditPackage:
    if credits <= 0 or bonus_credits < 0:
        raise LedgerValidationError("Package credits must be positive and bonus non-negative")

    package = CreditPackage(
        name=name,
        credits=credits,
        bonus_credits=bonus_credits,
        price=normalize_price(price),
        currency=currency or settings.DEFAULT_CURRENCY,
        description=description,
        is_promotional=is_promotional,
        display_order=display_order,
    )
    db.add(package)
    await db.flush()
    return package
