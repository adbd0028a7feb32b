"""
Infrastructure Layer - Replaceable Collaborators

This layer contains the event store that keeps each station's history.
The domain layer knows nothing about it: a station works the same with or
without an event store attached.
"""
