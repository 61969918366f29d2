"""Alert rule evaluation and lifecycle engine."""
from alerts.engine import AlertEngine
from alerts.rules_manager import RulesManager
from alerts.store import LifecycleStore
from alerts.router import NotificationRouter
from alerts.channels import ConsoleChannel, FileChannel, build_channels
