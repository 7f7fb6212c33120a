"""
LifeOS Storage - versioned client-side storage engine.

Detects the storage generation, migrates legacy fragmented storage into the
unified versioned document with backup and rollback, and imports/exports data
in every format earlier clients produced.
"""

__version__ = "2.0.0"
