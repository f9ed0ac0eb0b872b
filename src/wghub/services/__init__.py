"""Hub services: allocation, registry, reconciliation and liveness."""
