"""
Liveness watcher for the installed agent service.

Keeps the container's main process alive while the agent service runs and
returns once the service has been observed down too many times.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from ..config import DEFAULT_SERVICE_PREFIX
from .platform import ServiceStatus

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 60.0
FAILURE_THRESHOLD = 3


class HealthState(Enum):
    """Watcher states."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    DEAD = "dead"


@dataclass
class ServiceHealthState:
    """Counter of non-running observations.

    Attributes:
        consecutive_non_running_checks: Failed observations so far
        threshold: The watcher is dead once the counter exceeds this
    """
    consecutive_non_running_checks: int = 0
    threshold: int = FAILURE_THRESHOLD

    @property
    def dead(self) -> bool:
        return self.consecutive_non_running_checks > self.threshold


class LivenessWatcher:
    """Polls the agent service status until it is declared dead.

    By default the failure counter is never reset when the service recovers,
    so the watcher ends on the fourth failed observation overall. Pass
    reset_on_recovery=True to require four consecutive failures instead.
    """

    def __init__(
        self,
        status_query: Optional[Callable[[str], ServiceStatus]] = None,
        *,
        service_prefix: str = DEFAULT_SERVICE_PREFIX,
        interval: float = POLL_INTERVAL_SECONDS,
        threshold: int = FAILURE_THRESHOLD,
        reset_on_recovery: bool = False,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the watcher.

        Args:
            status_query: Returns the status of the service matching a prefix
                (defaults to the Windows service control manager)
            service_prefix: Service name prefix of the agent service
            interval: Seconds between polls
            threshold: Failures tolerated before the watcher is dead
            reset_on_recovery: Reset the failure counter when the service runs again
            sleep: Sleep function
        """
        if status_query is None:
            from .platform import query_service_status
            status_query = query_service_status

        self._status_query = status_query
        self.service_prefix = service_prefix
        self.interval = interval
        self.reset_on_recovery = reset_on_recovery
        self._sleep = sleep
        self.health = ServiceHealthState(threshold=threshold)
        self.state = HealthState.HEALTHY
        self.polls = 0

    def _query(self) -> ServiceStatus:
        try:
            return self._status_query(self.service_prefix)
        except Exception as e:
            logger.warning(f"Service status query for '{self.service_prefix}*' failed: {e}")
            return ServiceStatus.UNKNOWN

    def tick(self) -> HealthState:
        """Poll the service once and advance the state machine."""
        if self.state is HealthState.DEAD:
            return self.state

        self.polls += 1
        status = self._query()

        if status is ServiceStatus.RUNNING:
            if self.reset_on_recovery:
                self.health.consecutive_non_running_checks = 0
            self.state = HealthState.HEALTHY
            return self.state

        self.health.consecutive_non_running_checks += 1
        count = self.health.consecutive_non_running_checks
        logger.warning(
            f"Agent service '{self.service_prefix}*' is {status.name.lower()} "
            f"(check {count}/{self.health.threshold + 1})"
        )

        self.state = HealthState.DEAD if self.health.dead else HealthState.DEGRADED
        return self.state

    def watch(self) -> int:
        """Poll until the service is declared dead.

        Returns:
            Number of polls performed
        """
        logger.info(
            f"Watching agent service '{self.service_prefix}*' every {self.interval:.0f}s"
        )
        while self.tick() is not HealthState.DEAD:
            self._sleep(self.interval)

        logger.info(f"Agent service '{self.service_prefix}*' is down; stopping watcher")
        return self.polls
