"""
noconflict - launch workers on demand, keep them from colliding, release them when idle.

One retention check per worker per tick:
    from noconflict import OnDemandRetentionStrategy, RetentionPolicy

    policy = RetentionPolicy(in_demand_delay=5, idle_delay=10, conflicts_with="^gpu-")
    strategy = OnDemandRetentionStrategy(policy)
    delay_minutes = strategy.check(worker, context)

Running checks on a schedule:
    from noconflict import Cluster, RetentionDriver

    cluster = Cluster()
    driver = RetentionDriver(cluster.context(), policies)
    driver.start()

Configuration-time validation:
    from noconflict import validate_conflicts_with

    validate_conflicts_with("^gpu-[0-9]+")
"""

__version__ = "0.1.0"

from noconflict.models import (  # noqa: E402
    Connectivity,
    OfflineCause,
    RetentionDecision,
    RetentionPolicy,
    ValidationResult,
    Verdict,
)
from noconflict.exceptions import (  # noqa: E402
    InvalidConflictPatternError,
    NoConflictConfigError,
    NoConflictError,
    UnknownWorkerError,
)
from noconflict.protocol import SchedulerContext  # noqa: E402
from noconflict.matcher import (  # noqa: E402
    ActiveMatcher,
    ConflictMatcher,
    DisabledMatcher,
    validate_conflicts_with,
)
from noconflict.audit import (  # noqa: E402
    AuditLogger,
    MemorySink,
    RetentionEvent,
    RetentionEventType,
    format_time_span,
)
from noconflict.strategy import OnDemandRetentionStrategy  # noqa: E402
from noconflict.config import PolicyBook, load_policies  # noqa: E402
from noconflict.cluster import Cluster, ClusterSnapshot, PendingItem, Worker  # noqa: E402
from noconflict.driver import RetentionDriver, check_snapshot  # noqa: E402

__all__ = [
    "__version__",
    # Models
    "Connectivity",
    "OfflineCause",
    "RetentionDecision",
    "RetentionPolicy",
    "ValidationResult",
    "Verdict",
    # Errors
    "NoConflictError",
    "NoConflictConfigError",
    "InvalidConflictPatternError",
    "UnknownWorkerError",
    # Engine
    "SchedulerContext",
    "ConflictMatcher",
    "ActiveMatcher",
    "DisabledMatcher",
    "validate_conflicts_with",
    "OnDemandRetentionStrategy",
    # Diagnostics
    "AuditLogger",
    "MemorySink",
    "RetentionEvent",
    "RetentionEventType",
    "format_time_span",
    # Config and runtime
    "PolicyBook",
    "load_policies",
    "Cluster",
    "ClusterSnapshot",
    "PendingItem",
    "Worker",
    "RetentionDriver",
    "check_snapshot",
]
