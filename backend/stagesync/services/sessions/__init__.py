"""Timer session services: durable store, per-room locking, transitions, broadcast.

HTTP routes and socket handlers import from here, keeping transport concerns
separate from the session state machine in ``stagesync.timing``.
"""
