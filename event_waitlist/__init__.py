"""
Event Waitlist Pipeline

A store-agnostic core for event waiting lists:
- Join / leave with one entry per entrant per event
- Decision records and their status vocabulary
- Opt-out aware notification fan-out by decision status
- Firestore and in-memory store bindings
"""

__version__ = "0.1.0"
