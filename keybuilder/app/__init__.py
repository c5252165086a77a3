"""Application wiring: wizard context, resource tracking and privileges."""
