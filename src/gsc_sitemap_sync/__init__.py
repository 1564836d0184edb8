"""Sitemap synchronization and Google indexing submission service."""

__version__ = "0.1.0"
