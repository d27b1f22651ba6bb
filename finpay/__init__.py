"""
FinPay

A small payments ledger: users register, log in, hold a balance and send
money to one another, with an append-only history of transactions.
"""

__version__ = "1.0.0"
