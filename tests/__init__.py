"""Registry test suite."""
