"""
Credit Evaluator - accept/reject decision for one order.

Pure function, no I/O: the commit coordinator calls it with values it read
inside its own transaction.
"""
from dataclasses import dataclass


@dataclass(frozen=True)
class CreditDecision:
    accepted: bool
    # credit the account would have after this order; only applied when accepted
    new_credit: int


def evaluate(current_credit: int, limit: int, order_amount: int) -> CreditDecision:
    """
    Check an order against the customer's credit limit.

    new_credit = current_credit + order_amount, accepted iff new_credit <= limit.
    """
    new_credit = current_credit + order_amount
    return CreditDecision(accepted=new_credit <= limit, new_credit=new_credit)
