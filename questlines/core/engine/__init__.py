"""Completion engine and graph-editing operations.

Mutations are the only writers of a questline. Each one keeps the stored
``completed`` flags consistent: a quest that loses a prerequisite or an
objective it was completed against is turned off, and the change cascades to
everything downstream of it.
"""
