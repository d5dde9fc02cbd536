"""HTTP facade over the dashboard core (FastAPI)."""
