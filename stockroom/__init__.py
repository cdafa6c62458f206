"""Table schema and migrations, session housekeeping and file ingest for a point-of-sale stock database."""

__version__ = "0.1.0"