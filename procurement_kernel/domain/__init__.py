"""Pure domain layer: value objects, clock, workflow and routing types. ZERO I/O."""
