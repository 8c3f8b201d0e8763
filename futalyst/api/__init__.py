"""HTTP API: routes, dependencies and rate limiting."""
