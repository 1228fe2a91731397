"""Cross-cutting infrastructure: observability, database access, executors."""
