"""Space missions catalog: CSV ingestion, mission queries and the HTTP API.

The ``pipelines`` subpackage holds the batch import and the query engine;
``api`` exposes them over FastAPI.
"""
