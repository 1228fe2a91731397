"""Storage layer: row schemas, ports and repositories."""
