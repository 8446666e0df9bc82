"""HTTP invocation interface."""
