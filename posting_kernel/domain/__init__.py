"""Pure domain logic: numbering, validation, document states.  No I/O."""
