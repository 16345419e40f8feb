"""
Glow-Up Organizer - Sync Engine Package

The local-first persistence and synchronization engine behind a personal
life organizer (habits, journal, body metrics, finance, study).

DESIGN PRINCIPLES:
1. One aggregate, always written locally first
2. The network is optional: CRUD never waits for it
3. Last writer wins, by timestamp, for the whole aggregate
4. Derived state (streaks, rollups) is recomputed, never patched
5. Every timer is owned and cancellable
"""

__version__ = "1.0.0"
__author__ = "Glow-Up Organizer Team"
