"""
In-memory catalog query and discovery engine.

Modules:
  - data_loader.py - one-time snapshot loading and record adaptation
  - query_engine.py - rankings, listings, lookups, aggregation, related works
  - projection.py - flattened search index records
  - search_engine.py - fuzzy search, filtering and sorting over the projection
"""
