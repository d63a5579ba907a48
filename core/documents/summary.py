from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from django.db.models import Sum

from core.documents.formatting import Number, to_decimal
from core.models import BillingAccount, Contract

EXECUTED_STATUSES = (BillingAccount.STATUS_APPROVED, BillingAccount.STATUS_PAID)


def executed_before_for(contract: Contract, exclude_account_id: Optional[int] = None) -> Decimal:
    """Sum of the contract's approved and paid accounts, other than ``exclude_account_id``."""
    qs = contract.billing_accounts.filter(status__in=EXECUTED_STATUSES)
    if exclude_account_id:
        qs = qs.exclude(id=exclude_account_id)
    return qs.aggregate(s=Sum('amount'))['s'] or Decimal('0')


def financial_summary(contract: Contract, current_amount: Number, executed_before: Number = None,
                      exclude_account_id: Optional[int] = None) -> dict:
    """Execution figures printed on the certification and activity report.

    ``total = initial + addition``, ``executed = before + current`` and
    ``balance = total - executed``; ``percent`` is 0 unless the total is positive.
    """
    initial = to_decimal(contract.total_amount)
    addition = to_decimal(contract.addition_amount)
    total = initial + addition
    before = (
        executed_before_for(contract, exclude_account_id) if executed_before is None
        else to_decimal(executed_before)
    )
    current = to_decimal(current_amount)
    executed = before + current
    percent = (executed / total * 100).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP) if total > 0 else Decimal('0')
    return {
        'initial': initial,
        'addition': addition,
        'total': total,
        'executedBefore': before,
        'current': current,
        'executed': executed,
        'balance': total - executed,
        'percent': percent,
    }
