"""
Permanent record store (expenses, categories, payment methods, attachments).
"""

from .sqlite_store import EXPENSE_STATUSES, RecordStore, normalize_tags, parse_flag, savepoint

__all__ = ["EXPENSE_STATUSES", "RecordStore", "normalize_tags", "parse_flag", "savepoint"]
