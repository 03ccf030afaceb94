"""
photovault - Photo storage service with consistent metadata and blob stores

Photos are kept in two independent stores:
- Photo metadata in a DuckDB database, evolved by versioned SQL migrations
- Photo bytes in a flat-file blob store on the local filesystem
- Soft deletes that keep both stores consistent without a shared transaction
"""

__version__ = "0.1.0"
__author__ = "photovault"
__description__ = "Photo storage service with consistent metadata and blob stores"
