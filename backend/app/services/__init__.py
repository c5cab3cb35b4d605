"""Service layer: pipeline stages and external service clients."""
