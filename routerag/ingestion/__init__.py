"""Ingestion package for offline pipelines.

Contains the record ingestor that loads client/invoice records, embeds them and
upserts them into the entity tables. See ingest_records.py.
"""
