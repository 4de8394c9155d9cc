"""
Ascendant core infrastructure.

Configuration, logging, database access, events, locking and service
wiring. No game rules live here.
"""
