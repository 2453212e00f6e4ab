"""
xcrawl

A concurrent breadth-first web crawler.
"""

__version__ = "1.0.0"
__description__ = "Breadth-first web crawler with depth, host and containment filters"
