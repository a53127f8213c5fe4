"""Tool definitions, registry and invocation boundary."""
