"""Medflow — medicine order lifecycle core.

Coordinates stock reservation, payment settlement, the order state machine,
delivery assignment and notifications for medicine orders placed with a
pharmacy or health facility.
"""
