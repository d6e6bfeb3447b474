"""Pure domain types for the petty cash kernel. No ORM, no I/O."""
