"""Host-facing operations: disk steps, strategy application, power, config."""
