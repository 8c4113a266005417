"""Storage, ingestion and provider adapters."""
