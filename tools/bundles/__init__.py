"""Post-build checks and repairs for OpenNext Lambda bundles."""
