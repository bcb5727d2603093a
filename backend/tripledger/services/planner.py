"""
Settlement planning: turn net balances into debtor -> creditor transfers.
"""
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Dict, List, Mapping, Optional, Tuple
from tripledger.core.config import settings


@dataclass
class Transfer:
    """A single payment from a debtor to a creditor, in base currency."""
    from_user_id: int
    to_user_id: int
    amount: Decimal
    oldest_debt_date: Optional[date] = None


def plan_settlements(
    net_balances: Mapping[int, Decimal],
    debt_ages: Optional[Dict[Tuple[int, int], date]] = None,
    tolerance: Optional[Decimal] = None,
) -> List[Transfer]:
    """
    Greedy largest-creditor / largest-debtor matching.

    Each round pays min(creditor, debtor) from the biggest debtor to the
    biggest creditor and drops whichever side is now within tolerance of
    zero, so N unsettled parties need at most N-1 transfers. Amounts are not
    rounded here; callers round to the currency at the presentation boundary.
    """
    tolerance = settings.SETTLEMENT_TOLERANCE if tolerance is None else Decimal(tolerance)
    debt_ages = debt_ages or {}

    creditors = [[uid, Decimal(bal)] for uid, bal in net_balances.items() if bal > tolerance]
    debtors = [[uid, -Decimal(bal)] for uid, bal in net_balances.items() if bal < -tolerance]

    transfers: List[Transfer] = []
    while creditors and debtors:
        # Stable sort keeps first-appearance order between equal balances
        creditors.sort(key=lambda c: c[1], reverse=True)
        debtors.sort(key=lambda d: d[1], reverse=True)
        creditor, debtor = creditors[0], debtors[0]

        amount = min(creditor[1], debtor[1])
        transfers.append(Transfer(
            from_user_id=debtor[0],
            to_user_id=creditor[0],
            amount=amount,
            oldest_debt_date=debt_ages.get((debtor[0], creditor[0])),
        ))

        creditor[1] -= amount
        debtor[1] -= amount
        if creditor[1] <= tolerance:
            creditors.pop(0)
        if debtor[1] <= tolerance:
            debtors.pop(0)

    return transfers
