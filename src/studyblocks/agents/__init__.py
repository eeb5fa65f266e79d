"""Ingestion-side collaborators: generation, image lookup and materialization."""
