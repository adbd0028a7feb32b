"""
Domain Layer - Pay Station Business Logic

This layer contains:
- Domain events (immutable facts about coins inserted, purchases, refunds)
- The PayStation aggregate (the consistency boundary for one transaction)
- Value objects (receipts, coins, parking rates)

Key principle: ZERO dependencies on infrastructure.
The station can be exercised without any event store attached.
"""
