"""
Record Store

Customers, transactions and the store profile kept as three JSON
collections in a KeyValueStore.

This is a dumb persistence layer: it never validates business rules and
never touches the derived balance fields on its own. Callers that need
several collections updated together use commit(), which goes through a
single set_many call.
"""

import json
from typing import Iterable, Optional, Sequence, TypeVar

from pydantic import ValidationError as PydanticValidationError

from khata.config import StoreProfileSettings, get_settings
from khata.models.ledger import Customer, LedgerModel, StoreProfile, Transaction
from khata.services.storage.interface import CorruptRecordError, KeyValueStore

STORAGE_KEYS = {
    "customers": "khata_customers",
    "transactions": "khata_transactions",
    "profile": "khata_profile",
}

ModelT = TypeVar("ModelT", bound=LedgerModel)


def sort_newest_first(transactions: Iterable[Transaction]) -> list[Transaction]:
    """Order transactions by date descending; ties keep their stored order."""
    return sorted(transactions, key=lambda t: t.date, reverse=True)


def _dump_collection(records: Sequence[LedgerModel]) -> str:
    return json.dumps([r.to_record() for r in records], ensure_ascii=False)


class RecordStore:
    """
    Typed access to the ledger collections.

    Args:
        kv: Key-value backend holding the collections
        default_profile: Profile returned until one is saved
    """

    def __init__(
        self,
        kv: KeyValueStore,
        default_profile: Optional[StoreProfileSettings] = None,
    ):
        self._kv = kv
        self._default_profile = default_profile or get_settings().store

    @property
    def backend(self) -> KeyValueStore:
        return self._kv

    async def _load_collection(self, name: str, model: type[ModelT]) -> list[ModelT]:
        raw = await self._kv.get(STORAGE_KEYS[name])
        if raw is None:
            return []
        try:
            items = json.loads(raw)
        except json.JSONDecodeError as e:
            raise CorruptRecordError(f"Stored {name} are not valid JSON: {e}") from e
        if not isinstance(items, list):
            raise CorruptRecordError(f"Stored {name} are not a list")
        try:
            return [model.model_validate(item) for item in items]
        except PydanticValidationError as e:
            raise CorruptRecordError(f"Stored {name} contain an invalid record: {e}") from e

    # -------------------------------------------------------------------------
    # Customers
    # -------------------------------------------------------------------------

    async def list_customers(self) -> list[Customer]:
        """All customers in insertion order."""
        return await self._load_collection("customers", Customer)

    async def get_customer(self, customer_id: str) -> Optional[Customer]:
        for customer in await self.list_customers():
            if customer.id == customer_id:
                return customer
        return None

    async def put_customer(self, customer: Customer) -> None:
        """Insert or replace a customer by id."""
        customers = await self.list_customers()
        for index, existing in enumerate(customers):
            if existing.id == customer.id:
                customers[index] = customer
                break
        else:
            customers.append(customer)
        await self._kv.set(STORAGE_KEYS["customers"], _dump_collection(customers))

    async def delete_customer_cascade(self, customer_id: str) -> int:
        """
        Remove a customer and every transaction that references it.

        Both collections are written in one commit.

        Returns:
            Number of transactions removed
        """
        customers = [c for c in await self.list_customers() if c.id != customer_id]
        all_transactions = await self._load_collection("transactions", Transaction)
        kept = [t for t in all_transactions if t.customer_id != customer_id]
        await self.commit(customers=customers, transactions=kept)
        return len(all_transactions) - len(kept)

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def list_transactions(
        self,
        customer_id: Optional[str] = None,
    ) -> list[Transaction]:
        """
        Transactions sorted newest first.

        Args:
            customer_id: Restrict to one customer's transactions
        """
        transactions = await self._load_collection("transactions", Transaction)
        if customer_id is not None:
            transactions = [t for t in transactions if t.customer_id == customer_id]
        return sort_newest_first(transactions)

    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        for transaction in await self._load_collection("transactions", Transaction):
            if transaction.id == transaction_id:
                return transaction
        return None

    async def put_transaction_set(self, transactions: Sequence[Transaction]) -> None:
        """Replace the whole transaction collection."""
        await self._kv.set(STORAGE_KEYS["transactions"], _dump_collection(transactions))

    # -------------------------------------------------------------------------
    # Profile
    # -------------------------------------------------------------------------

    async def get_profile(self) -> StoreProfile:
        raw = await self._kv.get(STORAGE_KEYS["profile"])
        if raw is None:
            return StoreProfile(
                name=self._default_profile.name,
                address=self._default_profile.address,
                phone=self._default_profile.phone,
                owner_name=self._default_profile.owner_name,
            )
        try:
            return StoreProfile.model_validate_json(raw)
        except PydanticValidationError as e:
            raise CorruptRecordError(f"Stored profile is invalid: {e}") from e

    async def save_profile(self, profile: StoreProfile) -> None:
        await self._kv.set(
            STORAGE_KEYS["profile"],
            json.dumps(profile.to_record(), ensure_ascii=False),
        )

    # -------------------------------------------------------------------------
    # Multi-collection writes
    # -------------------------------------------------------------------------

    async def commit(
        self,
        customers: Optional[Sequence[Customer]] = None,
        transactions: Optional[Sequence[Transaction]] = None,
        profile: Optional[StoreProfile] = None,
    ) -> None:
        """
        Replace any combination of collections in one write.

        A collection passed as None is left untouched.
        """
        values = {}
        if customers is not None:
            values[STORAGE_KEYS["customers"]] = _dump_collection(customers)
        if transactions is not None:
            values[STORAGE_KEYS["transactions"]] = _dump_collection(transactions)
        if profile is not None:
            values[STORAGE_KEYS["profile"]] = json.dumps(
                profile.to_record(), ensure_ascii=False
            )
        if values:
            await self._kv.set_many(values)

    async def clear_all(self) -> None:
        """Empty both ledger collections and forget the saved profile."""
        await self.commit(customers=[], transactions=[])
        await self._kv.remove(STORAGE_KEYS["profile"])
