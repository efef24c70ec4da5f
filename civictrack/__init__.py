"""
CivicTrack
==========

Ticket lifecycle and SLA engine for civic issue reporting.
"""

__version__ = "1.0.0"
