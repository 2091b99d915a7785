"""
up-ynab-sync

Reconciles Up Bank webhook events into a YNAB budget.
"""

__version__ = "1.0.0"
