"""
Household Ledger

Tracks a household's recurring bills, installment plans, peer-to-peer
loans and credit-card invoices, and keeps their paid/open state
consistent as payments are recorded and reversed.
"""

__version__ = "0.1.0"
