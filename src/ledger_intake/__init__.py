"""
Bulk document intake -> staged review -> confirmed expense records.

Turns receipts, invoices and expense exports (PDF, images, CSV, Excel) into
candidate expense records, stages them for review behind a time-boxed,
user-scoped session, and materializes the approved ones with their original
files attached.
"""

__version__ = "0.1.0"
