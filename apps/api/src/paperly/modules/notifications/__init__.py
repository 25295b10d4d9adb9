"""
Notifications module - durable per-recipient notifications with live delivery.
"""
