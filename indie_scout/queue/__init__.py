"""Durable crawl queue: models, batch orchestration and admin operations."""
