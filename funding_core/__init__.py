"""Core (UI-agnostic) funding dashboard logic.

This package contains:
- dataset access (HTTP range requests -> SQLite)
- filter normalization and parameterized query building
- record projection, pagination and summary aggregation
- payload rendering (JSON-serializable dicts + Altair -> Vega-Lite specs)
"""
