"""Pure domain layer: value objects, DTOs, clock, workflow types and the repository contract."""
