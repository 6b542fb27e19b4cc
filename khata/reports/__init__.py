"""Read-only reports and customer message templates."""

from khata.reports.messages import format_amount, reminder_message, transaction_message
from khata.reports.builder import ReportBuilder

__all__ = ["ReportBuilder", "format_amount", "reminder_message", "transaction_message"]
