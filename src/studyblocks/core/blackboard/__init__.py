"""Blackboard: shared run state with revisioned trace snapshots."""

from .memory import Blackboard
from .storage import TraceWriter
from .trace import TraceSnapshot

__all__ = ["Blackboard", "TraceSnapshot", "TraceWriter"]
