"""
Loyalty discounts.

A strategy is plain data tagged with a DiscountKind; what a kind means is
decided by the predicate registered for it in _APPLICABILITY. Strategies are
evaluated in list order and the lowest discounted amount wins, with ties
going to the strategy listed first.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional, Sequence

from bookshop.models.order import Order
from bookshop.models.user import User
from bookshop.services.pricing import ZERO, to_money

logger = logging.getLogger(__name__)

REGULAR_MIN_ORDERS = 5
PREMIUM_MIN_ORDERS = 10

NO_DISCOUNT_DESCRIPTION = "No discount"


class DiscountKind(str, Enum):
    NONE = "none"
    REGULAR_LOYALTY = "regular_loyalty"
    PREMIUM_LOYALTY = "premium_loyalty"


@dataclass(frozen=True)
class DiscountStrategy:
    kind: DiscountKind
    rate: Decimal
    description: str


@dataclass(frozen=True)
class DiscountQuote:
    original_amount: Decimal
    discounted_amount: Decimal
    description: str
    kind: DiscountKind = DiscountKind.NONE

    @property
    def discount_amount(self) -> Decimal:
        return self.original_amount - self.discounted_amount


DEFAULT_STRATEGIES = (
    DiscountStrategy(DiscountKind.NONE, Decimal("0"), NO_DISCOUNT_DESCRIPTION),
    DiscountStrategy(DiscountKind.REGULAR_LOYALTY, Decimal("0.10"), "Regular Loyalty Discount (10%)"),
    DiscountStrategy(DiscountKind.PREMIUM_LOYALTY, Decimal("0.15"), "Premium Loyalty Discount (15%)"),
)


def _order_count(user: Optional[User]) -> int:
    try:
        return int(getattr(user, "order_count", 0) or 0)
    except (TypeError, ValueError):
        return 0


def _is_customer(user: Optional[User]) -> bool:
    # admins never get a loyalty discount, whatever their order count
    return user is not None and not getattr(user, "is_admin", False)


def _standard_applies(user: Optional[User]) -> bool:
    return _is_customer(user)


def _regular_applies(user: Optional[User]) -> bool:
    return _is_customer(user) and REGULAR_MIN_ORDERS <= _order_count(user) < PREMIUM_MIN_ORDERS


def _premium_applies(user: Optional[User]) -> bool:
    return _is_customer(user) and _order_count(user) >= PREMIUM_MIN_ORDERS


_APPLICABILITY = {
    DiscountKind.NONE: _standard_applies,
    DiscountKind.REGULAR_LOYALTY: _regular_applies,
    DiscountKind.PREMIUM_LOYALTY: _premium_applies,
}


def is_applicable(strategy: DiscountStrategy, user: Optional[User]) -> bool:
    predicate = _APPLICABILITY.get(strategy.kind)
    return predicate is not None and predicate(user)


def apply_rate(amount: Decimal, rate: Decimal) -> Decimal:
    return amount - to_money(amount * rate)


def loyalty_tier(user: Optional[User]) -> str:
    if _premium_applies(user):
        return "premium"
    if _regular_applies(user):
        return "regular"
    return "standard"


def _coerce_amount(amount) -> Optional[Decimal]:
    if amount is None:
        return None
    try:
        value = to_money(amount)
    except (InvalidOperation, TypeError, ValueError):
        return None
    if not value.is_finite():
        return None
    return value


def select_discount(
    user: Optional[User],
    amount,
    strategies: Sequence[DiscountStrategy] = DEFAULT_STRATEGIES,
) -> DiscountQuote:
    original = _coerce_amount(amount)
    if original is None:
        return DiscountQuote(ZERO, ZERO, NO_DISCOUNT_DESCRIPTION)
    if original < 0:
        return DiscountQuote(original, original, NO_DISCOUNT_DESCRIPTION)

    best: Optional[DiscountStrategy] = None
    best_amount = original

    for strategy in strategies:
        if not is_applicable(strategy, user):
            continue
        discounted = apply_rate(original, strategy.rate)
        if best is None or discounted < best_amount:
            best = strategy
            best_amount = discounted

    if best is None:
        return DiscountQuote(original, original, NO_DISCOUNT_DESCRIPTION)

    return DiscountQuote(original, best_amount, best.description, best.kind)


def apply_loyalty_discount(order: Order, user: Optional[User]) -> DiscountQuote:
    """Price the order for the user's current standing and record the discount on it."""
    quote = select_discount(user, order.total_amount)
    order.set_discount(quote.discount_amount)
    if quote.discount_amount > 0:
        logger.info(
            f"Order {order.id}: {quote.description}, -{quote.discount_amount}"
        )
    return quote
