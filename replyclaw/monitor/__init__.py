"""Inbound auto-reply monitor for replyclaw."""

from replyclaw.monitor.echo import EchoTracker
from replyclaw.monitor.history import GroupHistoryStore
from replyclaw.monitor.monitor import AutoReplyMonitor
from replyclaw.monitor.process import process_message
from replyclaw.monitor.tasks import BackgroundTaskTracker

__all__ = ["AutoReplyMonitor", "BackgroundTaskTracker", "EchoTracker", "GroupHistoryStore", "process_message"]
