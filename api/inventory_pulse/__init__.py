"""
Inventory Pulse - catalog / inventory sync and stock health metrics.
"""
