"""Starling to Actual Budget sync service: webhook ingestion, reconciliation and budget alerts."""
