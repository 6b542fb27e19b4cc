"""
Ledger Engine

The single source of truth for turning a transaction history into a
customer's totals.

DESIGN DECISION: Totals are recomputed from the full history every time,
never patched incrementally. Any snapshot of the transactions fully
determines the correct totals, so "last writer wins" sync cannot leave a
balance drifting away from its ledger.

Guarantees:
- Deterministic and independent of transaction order (math.fsum is
  exactly rounded, max() of dates is well defined)
- Pure: fold() and recompute() never write; callers persist the result
- A malformed amount raises ValidationError instead of counting as zero
"""

import math
from typing import Iterable, Sequence

import structlog

from khata.errors import NotFoundError
from khata.models.ledger import Customer, CustomerTotals, Transaction, TransactionType
from khata.services.storage import RecordStore
from khata.validation import coerce_amount

logger = structlog.get_logger(__name__)


class LedgerEngine:
    """
    Computes customer totals from transactions.

    Args:
        store: Record store used by recompute() to read a customer's history
    """

    def __init__(self, store: RecordStore):
        self._store = store

    @staticmethod
    def fold(customer: Customer, transactions: Iterable[Transaction]) -> CustomerTotals:
        """
        Fold a customer's transactions into totals.

        Transactions belonging to other customers are ignored. With no
        transactions the customer keeps its previous last_transaction_date
        (usually its creation time).
        """
        borrowed: list[float] = []
        paid: list[float] = []
        last_date = None

        for transaction in transactions:
            if transaction.customer_id != customer.id:
                continue
            amount = coerce_amount(transaction.amount, f"amount of transaction {transaction.id}")
            if transaction.type == TransactionType.BORROW:
                borrowed.append(amount)
            else:
                paid.append(amount)
            if last_date is None or transaction.date > last_date:
                last_date = transaction.date

        return CustomerTotals(
            total_borrowed=math.fsum(borrowed),
            total_paid=math.fsum(paid),
            last_transaction_date=last_date or customer.last_transaction_date,
        )

    @staticmethod
    def apply(customer: Customer, totals: CustomerTotals) -> Customer:
        """Return a copy of the customer with every derived field replaced."""
        return customer.model_copy(update={
            "total_borrowed": totals.total_borrowed,
            "total_paid": totals.total_paid,
            "last_transaction_date": totals.last_transaction_date,
        })

    async def recompute(self, customer_id: str) -> CustomerTotals:
        """
        Recompute a stored customer's totals from its stored transactions.

        Raises:
            NotFoundError: If the customer does not exist
            ValidationError: If a stored amount is not a finite number
        """
        customer = await self._store.get_customer(customer_id)
        if customer is None:
            raise NotFoundError("customer", customer_id)

        transactions = await self._store.list_transactions(customer_id)
        totals = self.fold(customer, transactions)
        logger.debug(
            "balance_recomputed",
            customer_id=customer_id,
            transactions=len(transactions),
            total_borrowed=totals.total_borrowed,
            total_paid=totals.total_paid,
        )
        return totals

    @classmethod
    def recompute_collection(
        cls,
        customers: Sequence[Customer],
        transactions: Sequence[Transaction],
    ) -> list[Customer]:
        """
        Recompute every customer against one transaction set.

        Used when restoring a snapshot so imported totals are never trusted blindly.
        """
        by_customer: dict[str, list[Transaction]] = {c.id: [] for c in customers}
        orphans = 0
        for transaction in transactions:
            owned = by_customer.get(transaction.customer_id)
            if owned is None:
                orphans += 1
            else:
                owned.append(transaction)

        if orphans:
            logger.warning("orphan_transactions_kept", count=orphans)

        return [cls.apply(c, cls.fold(c, by_customer[c.id])) for c in customers]
