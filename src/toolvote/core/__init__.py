"""Turn loop primitives: sampling, retry, consensus and the state machine."""
