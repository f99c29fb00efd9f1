"""tasksync test suite."""
