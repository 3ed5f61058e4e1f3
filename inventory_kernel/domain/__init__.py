"""Pure domain layer: value objects, state machine, routing rules. Zero I/O."""
