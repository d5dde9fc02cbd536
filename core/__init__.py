"""Core (UI-agnostic) CRM dashboard logic.

This package contains:
- entity field tables and the record API client/gateway
- per-entity record stores
- filter normalization and pandas view derivation
- page compute functions (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
"""
