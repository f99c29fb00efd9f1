"""tasksync: offline-first sync connector and snapshot backup/restore engine."""

__version__ = "0.1.0"
