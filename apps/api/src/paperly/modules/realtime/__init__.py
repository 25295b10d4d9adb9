"""
Realtime module - typed events, Redis pub/sub delivery and the WebSocket feed.
"""
