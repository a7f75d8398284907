"""
Marketplace Payouts Backend

Vendor payout service for the marketplace that provides:
- Earnings calculation from paid orders, net of the platform fee
- Frequency-based payout scheduling (weekly, biweekly, monthly)
- Disbursement through a pluggable payment provider
- REST API and CLI for payout history, settings and manual runs
"""

__version__ = "0.1.0"
__author__ = "Marketplace Team"
