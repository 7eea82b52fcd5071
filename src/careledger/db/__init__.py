"""Persistence layer for synced transactions and expenses."""
