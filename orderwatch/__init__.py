"""
Order watchdog package.

Provides:
- Core domain enums, payload models and errors for the venue
- In-memory stores for tracked orders and best bid/ask
- Services for bootstrap reconciliation, event dispatch, quoting,
  cancellation and cleanup
- WatchDog run state machine and the Bot that wires it to the venue
"""
