"""Job scheduling: definitions, persistence, execution, and live scheduling."""

from src.scheduler.engine import SchedulerEngine
from src.scheduler.executor import JobExecutor
from src.scheduler.models import ActiveTask, JobDefinition
from src.scheduler.store import JobStore

__all__ = [
    "ActiveTask",
    "JobDefinition",
    "JobStore",
    "JobExecutor",
    "SchedulerEngine",
]
