"""Core (UI-agnostic) transaction analytics logic.

This package contains:
- data loading (CSV -> pandas, typed and read-only after load)
- filter normalization
- the filter-and-aggregate engine (KPIs, group-by aggregations, histograms)
- page compute functions (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
"""
