"""
Maintenance module - periodic cleanup of expired and stale records.
"""
