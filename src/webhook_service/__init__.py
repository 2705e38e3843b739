"""Webhook ingestion and background job processing service."""
