"""
Content repurposer: tier-aware conversion of source content into
platform-specific variants.
"""

__version__ = "1.0.0"
