"""A small in-memory relational database engine: catalog, query plans, joins, grouping, ordering and aggregation."""

__version__ = "0.1.0"