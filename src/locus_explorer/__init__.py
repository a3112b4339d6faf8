"""Locus Explorer.

Merges partial protein, nucleotide and annotation datasets into an
in-memory locus index with incremental batch loading, search and paging.
"""

__version__ = "1.0.0"
__author__ = "Austin P. Morrissey"
