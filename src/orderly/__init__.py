"""Multi-seller order lifecycle engine."""
