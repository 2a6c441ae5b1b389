"""Lottery ticket-range reconciliation.

Re-derives dealer-attributed ticket ranges from ERP stock summaries and agent return
reports: heuristic row parsing, master-dealer gap fill, availability splitting and V1
interval exclusion.
"""

__version__ = "0.1.0"
