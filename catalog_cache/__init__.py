"""
Catalog Cache

Product cache subsystem for the e-commerce catalog backend: split meta/price/variants
product entries, stampede-protected read-through, field-aware invalidation and
bulk list-cache invalidation.
"""

__version__ = "1.0.0"
