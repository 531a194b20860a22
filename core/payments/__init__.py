"""
Payment reconciliation and course access granting.

Receives PayHere callbacks, Stripe webhooks and admin bank-transfer
decisions, moves ``Payment`` rows through ``pending -> completed | failed |
rejected`` and grants course access exactly once per user and course.
"""
