# src/services/ride_board/__init__.py
"""
Ride Board Service: HTTP API доски попутчиков.
"""
