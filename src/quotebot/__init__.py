"""
Quote lookup bot: quote corpus indexing, enrichment and search.
"""

__version__ = "1.0.0"
