"""Migration stages, one module per entity kind."""
