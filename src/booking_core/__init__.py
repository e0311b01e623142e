"""Multi-tenant booking backend core: tenancy, pipeline, cache, isolation."""
