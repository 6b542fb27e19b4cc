"""
Transaction Lifecycle Manager

The only way ledger state changes. It orchestrates:
1. Adding a transaction (udhaar or jama)
2. Editing a transaction in place, optionally auto-settling it
3. Adding a customer, optionally with an opening balance
4. Customer details updates and cascade deletes

After every mutation the affected customers are re-folded by the
LedgerEngine and written in the same commit as the transactions, so the
store is never observed with a transaction whose customer totals do not
include it.

Once a mutation is committed, an AuditEvent is published to every
subscriber (audit logger, sync service). Subscribers never affect the
outcome of the mutation.
"""

from typing import Any, Awaitable, Callable, Iterable, Optional, Sequence
from uuid import UUID

import structlog
from pydantic import ValidationError as PydanticValidationError

from khata.audit import create_correlation_id
from khata.config import get_settings
from khata.errors import NotFoundError, ValidationError
from khata.ledger.engine import LedgerEngine
from khata.models.audit import AuditEvent, AuditEventBuilder
from khata.models.ledger import (
    TEXT_MAX_LENGTH,
    Customer,
    PaymentMethod,
    StoreProfile,
    Transaction,
    TransactionType,
    default_method_for,
    ensure_utc,
    new_id,
    utc_now,
)
from khata.services.storage import RecordStore
from khata.validation import LedgerValidator, coerce_amount

logger = structlog.get_logger(__name__)

MutationListener = Callable[[AuditEvent], Awaitable[Any]]

OPENING_BALANCE_NOTE = "Initial Balance"
SETTLEMENT_NOTE = "Auto-settled via Edit"
SETTLEMENT_ITEMS_FALLBACK = "Credit"

EDITABLE_CUSTOMER_FIELDS = ("name", "phone", "address", "photo_url")


class TransactionLifecycleManager:
    """
    Orchestrates every ledger mutation.

    Args:
        store: Record store holding customers and transactions
        engine: Ledger engine (created over the same store if omitted)
        validator: Business-rule checks
        opening_balance_label: Items text for an opening balance given without items
        clock: Source of "now" for opening balances and settlements
    """

    def __init__(
        self,
        store: RecordStore,
        engine: Optional[LedgerEngine] = None,
        validator: Optional[LedgerValidator] = None,
        opening_balance_label: Optional[str] = None,
        clock: Callable[[], Any] = utc_now,
    ):
        self._store = store
        self._engine = engine or LedgerEngine(store)
        self._validator = validator or LedgerValidator()
        self._opening_label = opening_balance_label or get_settings().app.opening_balance_label
        self._clock = clock
        self._listeners: list[MutationListener] = []

    @property
    def store(self) -> RecordStore:
        return self._store

    @property
    def engine(self) -> LedgerEngine:
        return self._engine

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def subscribe(self, listener: MutationListener) -> None:
        """Register a coroutine called with every committed mutation event."""
        self._listeners.append(listener)

    async def _publish(self, *events: AuditEvent) -> None:
        for event in events:
            for listener in self._listeners:
                try:
                    await listener(event)
                except Exception:
                    # The mutation is already committed; report and keep notifying
                    logger.exception(
                        "mutation_listener_failed",
                        event_type=event.event_type.value,
                        event_id=str(event.event_id),
                    )

    def _now(self):
        return ensure_utc(self._clock())

    @staticmethod
    def _build_transaction(data: dict[str, Any]) -> Transaction:
        """Run full model validation; copies made with model_copy skip it."""
        try:
            return Transaction.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid transaction: {e}") from e

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get_customer(self, customer_id: str) -> Customer:
        customer = await self._store.get_customer(customer_id)
        if customer is None:
            raise NotFoundError("customer", customer_id)
        return customer

    async def list_customers(self) -> list[Customer]:
        return await self._store.list_customers()

    async def list_transactions(self, customer_id: Optional[str] = None) -> list[Transaction]:
        return await self._store.list_transactions(customer_id)

    # -------------------------------------------------------------------------
    # Commit helper
    # -------------------------------------------------------------------------

    async def _commit(
        self,
        customers: Sequence[Customer],
        transactions: Sequence[Transaction],
        affected_ids: Iterable[str],
    ) -> dict[str, Customer]:
        """
        Re-fold the affected customers and write both collections at once.

        Returns:
            The recomputed affected customers by id
        """
        affected = set(affected_ids)
        refreshed: dict[str, Customer] = {}
        updated_customers = []
        for customer in customers:
            if customer.id in affected:
                customer = self._engine.apply(
                    customer, self._engine.fold(customer, transactions)
                )
                refreshed[customer.id] = customer
            updated_customers.append(customer)

        await self._store.commit(customers=updated_customers, transactions=transactions)
        return refreshed

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def add_transaction(
        self,
        transaction: Transaction,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Store a new transaction and refresh its customer's totals.

        Raises:
            ValidationError: Non-positive or non-numeric amount, missing items
                on a credit entry, or a method that does not fit the type
            NotFoundError: If the customer does not exist
        """
        correlation_id = correlation_id or create_correlation_id()

        transaction = self._build_transaction({
            **transaction.model_dump(warnings=False),
            "amount": coerce_amount(transaction.amount),
        })
        self._validator.ensure_valid_transaction(transaction, now=self._now())

        customers = await self._store.list_customers()
        if not any(c.id == transaction.customer_id for c in customers):
            raise NotFoundError("customer", transaction.customer_id)

        existing = await self._store.list_transactions()
        if any(t.id == transaction.id for t in existing):
            raise ValidationError(f"Transaction already exists: {transaction.id}")

        await self._commit(customers, [transaction, *existing], [transaction.customer_id])

        logger.info(
            "transaction_added",
            transaction_id=transaction.id,
            customer_id=transaction.customer_id,
            type=transaction.type.value,
            amount=transaction.amount,
        )
        await self._publish(AuditEventBuilder.transaction_added(
            transaction_id=transaction.id,
            customer_id=transaction.customer_id,
            tx_type=transaction.type.value,
            amount=transaction.amount,
            correlation_id=correlation_id,
        ))
        return transaction

    async def record_transaction(
        self,
        customer_id: str,
        tx_type: TransactionType,
        amount: Any,
        items: str = "",
        method: Optional[PaymentMethod] = None,
        date=None,
        notes: str = "",
    ) -> Transaction:
        """
        Build a transaction from raw form values and add it.

        The date defaults to now and the method to CREDIT for udhaar,
        CASH for jama.
        """
        issues = self._validator.check_amount(amount)
        if issues:
            raise ValidationError(LedgerValidator.summarize(issues), issues=issues)

        try:
            transaction = Transaction(
                id=new_id(),
                customer_id=customer_id,
                type=tx_type,
                amount=coerce_amount(amount),
                items=items or "",
                date=date if date is not None else self._now(),
                method=method or default_method_for(TransactionType(tx_type)),
                notes=notes or "",
            )
        except (PydanticValidationError, ValueError) as e:
            raise ValidationError(f"Invalid transaction: {e}") from e

        return await self.add_transaction(transaction)

    async def edit_transaction(
        self,
        transaction: Transaction,
        settle: bool = False,
    ) -> tuple[Transaction, Optional[Transaction]]:
        """
        Overwrite amount, items and date of a stored transaction.

        With settle=True on a credit entry, a matching jama of the (edited)
        entry amount is added, dated now. The settlement pays that single
        entry, not the customer's whole outstanding balance.

        Returns:
            (updated_transaction, settlement_or_None)

        Raises:
            NotFoundError: If the transaction does not exist
            ValidationError: For invalid edited values, or an attempt to
                move the transaction to another customer or type
        """
        correlation_id = create_correlation_id()

        existing = await self._store.list_transactions()
        original = next((t for t in existing if t.id == transaction.id), None)
        if original is None:
            raise NotFoundError("transaction", transaction.id)

        if transaction.customer_id != original.customer_id:
            raise ValidationError("A transaction cannot be moved to another customer")
        if transaction.type != original.type:
            raise ValidationError("A transaction cannot change between udhaar and jama")

        updated = self._build_transaction({
            **original.model_dump(),
            "amount": coerce_amount(transaction.amount),
            "items": transaction.items,
            "date": transaction.date,
        })
        now = self._now()
        self._validator.ensure_valid_transaction(updated, now=now)

        transactions = [updated if t.id == updated.id else t for t in existing]

        settlement = None
        if settle and updated.type == TransactionType.BORROW:
            items = f"Settlement for: {updated.items or SETTLEMENT_ITEMS_FALLBACK}"
            settlement = self._build_transaction({
                "id": new_id(),
                "customer_id": updated.customer_id,
                "type": TransactionType.PAYMENT,
                "amount": updated.amount,
                "items": items[:TEXT_MAX_LENGTH],
                "date": now,
                "method": PaymentMethod.CASH,
                "notes": SETTLEMENT_NOTE,
            })
            transactions.insert(0, settlement)

        customers = await self._store.list_customers()
        await self._commit(customers, transactions, [updated.customer_id])

        changes = {
            field: getattr(updated, field)
            for field in ("amount", "items", "date")
            if getattr(updated, field) != getattr(original, field)
        }
        logger.info(
            "transaction_edited",
            transaction_id=updated.id,
            changed=sorted(changes),
            settled=settlement is not None,
        )

        events = [AuditEventBuilder.transaction_edited(
            transaction_id=updated.id,
            customer_id=updated.customer_id,
            changes={k: str(v) for k, v in changes.items()},
            correlation_id=correlation_id,
        )]
        if settlement is not None:
            events.append(AuditEventBuilder.settlement_created(
                settlement_id=settlement.id,
                settled_transaction_id=updated.id,
                customer_id=updated.customer_id,
                amount=settlement.amount,
                correlation_id=correlation_id,
            ))
        await self._publish(*events)

        return updated, settlement

    # -------------------------------------------------------------------------
    # Customers
    # -------------------------------------------------------------------------

    async def add_customer_with_opening_balance(
        self,
        customer: Customer,
        opening_amount: Any = None,
        opening_items: Optional[str] = None,
    ) -> Customer:
        """
        Store a new customer, optionally with an opening udhaar entry.

        Totals passed in on the customer are ignored; they start from the
        opening balance (or zero) and the creation time.

        Raises:
            ValidationError: Missing name/phone, duplicate id, or an invalid
                opening amount
        """
        correlation_id = create_correlation_id()
        self._validator.ensure_valid_customer(customer)

        now = self._now()
        customers = await self._store.list_customers()
        if any(c.id == customer.id for c in customers):
            raise ValidationError(f"Customer already exists: {customer.id}")

        fresh = customer.model_copy(update={
            "total_borrowed": 0.0,
            "total_paid": 0.0,
            "last_transaction_date": now,
        })

        has_opening = opening_amount is not None and not (
            isinstance(opening_amount, str) and not opening_amount.strip()
        )

        transactions = await self._store.list_transactions()
        opening = None
        if has_opening:
            issues = self._validator.check_amount(opening_amount, "opening_amount")
            if issues:
                raise ValidationError(LedgerValidator.summarize(issues), issues=issues)
            opening = Transaction(
                id=new_id(),
                customer_id=fresh.id,
                type=TransactionType.BORROW,
                amount=coerce_amount(opening_amount),
                items=(opening_items or "").strip() or self._opening_label,
                date=now,
                method=PaymentMethod.CREDIT,
                notes=OPENING_BALANCE_NOTE,
            )
            transactions = [opening, *transactions]

        refreshed = await self._commit([*customers, fresh], transactions, [fresh.id])
        stored = refreshed[fresh.id]

        logger.info("customer_created", customer_id=stored.id, opening=opening is not None)

        events = [AuditEventBuilder.customer_created(
            customer_id=stored.id,
            name=stored.name,
            opening_amount=opening.amount if opening else None,
            correlation_id=correlation_id,
        )]
        if opening is not None:
            events.append(AuditEventBuilder.transaction_added(
                transaction_id=opening.id,
                customer_id=stored.id,
                tx_type=opening.type.value,
                amount=opening.amount,
                correlation_id=correlation_id,
            ))
        await self._publish(*events)

        return stored

    async def update_customer_details(self, customer_id: str, **changes: Any) -> Customer:
        """
        Change a customer's name, phone, address or photo URL.

        Raises:
            ValidationError: For any other field (totals are never accepted
                from input) or a blank name/phone
            NotFoundError: If the customer does not exist
        """
        unsupported = sorted(set(changes) - set(EDITABLE_CUSTOMER_FIELDS))
        if unsupported:
            raise ValidationError(f"Fields cannot be edited directly: {', '.join(unsupported)}")

        customer = await self.get_customer(customer_id)
        try:
            updated = Customer.model_validate({**customer.model_dump(), **changes})
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid customer details: {e}") from e
        self._validator.ensure_valid_customer(updated)

        await self._store.put_customer(updated)

        changed = [f for f in EDITABLE_CUSTOMER_FIELDS if getattr(updated, f) != getattr(customer, f)]
        await self._publish(AuditEventBuilder.customer_updated(
            customer_id=customer_id,
            changed_fields=changed,
            correlation_id=create_correlation_id(),
        ))
        return updated

    async def delete_customer(self, customer_id: str) -> int:
        """
        Delete a customer together with all of its transactions.

        Returns:
            Number of transactions removed

        Raises:
            NotFoundError: If the customer does not exist
        """
        await self.get_customer(customer_id)
        removed = await self._store.delete_customer_cascade(customer_id)

        logger.info("customer_deleted", customer_id=customer_id, removed_transactions=removed)
        await self._publish(AuditEventBuilder.customer_deleted(
            customer_id=customer_id,
            removed_transactions=removed,
            correlation_id=create_correlation_id(),
        ))
        return removed

    async def recalculate_customer_balance(self, customer_id: str) -> Customer:
        """Recompute one customer's totals from storage and persist them."""
        customer = await self.get_customer(customer_id)
        totals = await self._engine.recompute(customer_id)
        updated = self._engine.apply(customer, totals)
        await self._store.put_customer(updated)

        await self._publish(AuditEventBuilder.balance_recomputed(
            customer_id=customer_id,
            total_borrowed=totals.total_borrowed,
            total_paid=totals.total_paid,
        ))
        return updated

    # -------------------------------------------------------------------------
    # Profile and housekeeping
    # -------------------------------------------------------------------------

    async def get_profile(self) -> StoreProfile:
        return await self._store.get_profile()

    async def save_profile(self, profile: StoreProfile) -> StoreProfile:
        if not profile.name.strip():
            raise ValidationError("Store name is required")
        await self._store.save_profile(profile)
        await self._publish(AuditEventBuilder.profile_updated(profile.name))
        return profile

    async def clear_all_data(self) -> None:
        """Remove every customer and transaction and reset the profile."""
        await self._store.clear_all()
        await self._publish(AuditEventBuilder.data_cleared())
