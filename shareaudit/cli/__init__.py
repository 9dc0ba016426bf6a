"""Command-line interface for ShareAudit."""
