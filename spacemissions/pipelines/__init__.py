"""Pipelines for record normalization, rocket resolution, batch ingestion
and mission querying.

Each step is callable on its own so the HTTP layer, the import script and
tests can drive them independently.
"""
