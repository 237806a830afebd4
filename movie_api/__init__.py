"""Movie catalog REST API with a deferred write queue."""
