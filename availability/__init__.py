"""
Availability synchronization Django application.

Keeps guaranteed-departure availability in step with partner booking pages
and notifies watching agencies of material changes.
"""
