"""
ShelfScan

Bookshelf photo analysis: vision-backend detection, readability tagging,
collection matching and external metadata enrichment.
"""

__version__ = "1.0.0"
