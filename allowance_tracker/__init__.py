"""
Save, Spend, Share - Allowance Tracker

A household financial-literacy ledger. Every child's money lives in
three buckets (Save, Spend, Share) and a weekly allowance equal to the
child's age is split across them.

DESIGN PRINCIPLES:
1. The transaction log is the history; balances are a cache of it
2. Validate first, mutate second
3. Age is always derived from the birthday
4. Every operation is audited
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Save Spend Share Team"
