"""Competitor-data migration engine for the compliance case-management platform."""

__version__ = "1.0.0"
