"""Core collaborators shared by every database backend."""

from locindex.core.monitor import CounterMonitor, NullMonitor, ProgressMonitor

__all__ = ["CounterMonitor", "NullMonitor", "ProgressMonitor"]
