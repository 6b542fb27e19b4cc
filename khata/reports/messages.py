"""
Customer message templates.

Plain, deterministic texts the shop owner can paste into WhatsApp or SMS.
"""

from khata.models.ledger import Customer, Transaction, TransactionType


def format_amount(value: float, currency: str = "₹") -> str:
    """Render an amount without trailing zeros: 500 -> ₹500, 12.5 -> ₹12.5."""
    if float(value).is_integer():
        text = str(int(value))
    else:
        text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{currency}{text}"


def reminder_message(customer: Customer, currency: str = "₹") -> str:
    """Payment reminder for the customer's current outstanding balance."""
    due = format_amount(customer.outstanding_balance, currency)
    return (
        f"Hello {customer.name}, your pending balance is {due}. "
        "Please pay at your earliest convenience."
    )


def transaction_message(
    customer: Customer,
    transaction: Transaction,
    balance: float,
    currency: str = "₹",
) -> str:
    """Receipt for a single entry, ending with the balance after it."""
    is_borrow = transaction.type == TransactionType.BORROW
    lines = [
        "*Credit Added*" if is_borrow else "*Payment Received*",
        f"Name: {customer.name}",
        f"Amount: {format_amount(transaction.amount, currency)}",
    ]
    if is_borrow:
        lines.append(f"Items: {transaction.items}")
    lines.append(f"Current Balance: {format_amount(balance, currency)}")
    return "\n".join(lines)
