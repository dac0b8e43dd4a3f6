"""
Function cost registry — what each billable feature costs, in credits.

Call sites look up a price with get_cost() right before billing. A missing
or inactive entry returns 0, which callers treat as "free", never as an
error. Administrators change prices with set_cost(); the change is visible
to the next get_cost() on any session once committed.
"""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tmc_ledger.exceptions import FunctionCostNotFoundError, LedgerValidationError
from tmc_ledger.models.function_cost import FunctionCost

logger = logging.getLogger(__name__)

# Seeded on startup; admin edits are never overwritten.
DEFAULT_FUNCTION_COSTS: dict[str, tuple[int, str, str]] = {
    "consultation_per_minute": (1, "consultation", "Video consultation, per minute"),
    "immediate_consultation": (10, "consultation", "Immediate on-call consultation"),
    "prescription": (2, "prescription", "Digital prescription"),
    "ai_response": (1, "ai", "AI assistant response"),
    "clinical_interview": (3, "ai", "AI clinical interview"),
    "statistics_access": (1, "data_access", "Anonymised statistics access"),
    "document_signature": (1, "document", "Digital document signature"),
    "whatsapp_message": (1, "messaging", "WhatsApp notification"),
}


async def get_function_cost(db: AsyncSession, function_name: str) -> FunctionCost | None:
    result = await db.execute(
        select(FunctionCost).where(FunctionCost.function_name == function_name)
    )
    return result.scalar_one_or_none()


async def get_cost(db: AsyncSession, function_name: str) -> int:
    """Price of a feature in credits; 0 if unknown or inactive."""
    result = await db.execute(
        select(FunctionCost.cost_in_credits)
        .where(FunctionCost.function_name == function_name)
        .where(FunctionCost.is_active.is_(True))
    )
    cost = result.scalar_one_or_none()
    return cost or 0


async def set_cost(
    db: AsyncSession,
    function_name: str,
    cost_in_credits: int,
    updated_by: uuid.UUID | None,
    category: str | None = None,
    description: str | None = None,
    is_active: bool | None = None,
) -> FunctionCost:
    """
    Create or update a feature's price.

    Raises:
        LedgerValidationError: If the cost is negative.
    """
    if cost_in_credits < 0:
        raise LedgerValidationError("Cost must be a non-negative integer")

    entry = await get_function_cost(db, function_name)
    if entry is None:
        entry = FunctionCost(
            function_name=function_name,
            cost_in_credits=cost_in_credits,
            category=category or "admin",
            description=description or f"Cost for using {function_name}",
            is_active=True if is_active is None else is_active,
            updated_by=updated_by,
        )
        db.add(entry)
    else:
        entry.cost_in_credits = cost_in_credits
        entry.updated_by = updated_by
        if category is not None:
            entry.category = category
        if description is not None:
            entry.description = description
        if is_active is not None:
            entry.is_active = is_active

    await db.flush()
    logger.info(
        "function cost %s set to %d by %s", function_name, cost_in_credits, updated_by
    )
    return entry


async def require_function(db: AsyncSession, function_name: str) -> FunctionCost:
    entry = await get_function_cost(db, function_name)
    if entry is None:
        raise FunctionCostNotFoundError(function_name)
    return entry


async def list_costs(db: AsyncSession, include_inactive: bool = False) -> list[FunctionCost]:
    """Registered costs ordered by category, then name."""
    query = select(FunctionCost).order_by(FunctionCost.category, FunctionCost.function_name)
    if not include_inactive:
        query = query.where(FunctionCost.is_active.is_(True))
    result = await db.execute(query)
    return list(result.scalars().all())


async def seed_default_costs(db: AsyncSession) -> int:
    """Insert any DEFAULT_FUNCTION_COSTS entry that isn't registered yet."""
    existing = set((await db.execute(select(FunctionCost.function_name))).scalars().all())
    added = 0
    for name, (cost, category, description) in DEFAULT_FUNCTION_COSTS.items():
        if name in existing:
            continue
        db.add(FunctionCost(
            function_name=name,
            cost_in_credits=cost,
            category=category,
            description=description,
        ))
        added += 1
    await db.flush()
    return added
