"""
Health-check and rollout strategies for service containers.
"""
from typing import Optional

from ..MODELS.manifest import DeployBlock, HealthCheckBlock, RestartPolicyBlock, UpdateConfig
from ..MODELS.stack import DeploySpec, HealthCheckSpec

DEFAULT_HEALTH_PATH = "/health"
DEFAULT_INTERVAL = "30s"
DEFAULT_TIMEOUT = "10s"
DEFAULT_RETRIES = 3
DEFAULT_START_PERIOD = "60s"


class HealthCheckBuilder:
    """
    Builds an HTTP probe against the service's own port.
    """

    def build(self, spec: Optional[HealthCheckSpec], port: int) -> Optional[HealthCheckBlock]:
        """
        :param spec: The declared health check; `None` or disabled yields nothing.
        :param port: Port the service listens on; 0 probes the default HTTP port.
        :return: The compose health check, or `None`.
        """
        if spec is None or not spec.enabled:
            return None

        path = spec.path or DEFAULT_HEALTH_PATH
        if not path.startswith("/"):
            path = "/" + path
        host = f"localhost:{port}" if port > 0 else "localhost"

        return HealthCheckBlock(
            test=["CMD-SHELL", f"curl -f http://{host}{path} || exit 1"],
            interval=spec.interval or DEFAULT_INTERVAL,
            timeout=spec.timeout or DEFAULT_TIMEOUT,
            retries=spec.retries if spec.retries > 0 else DEFAULT_RETRIES,
            start_period=spec.start_period or DEFAULT_START_PERIOD,
        )


class DeployStrategy:
    """
    Translates a rollout strategy into update and restart policies.

    `recreate` stops the old container before starting the new one. `rolling`,
    the default, starts the new replica first and rolls back on failure.
    """

    def build(self, spec: Optional[DeploySpec], replicas: int) -> DeployBlock:
        strategy = (spec.strategy if spec else "") or "rolling"

        if strategy == "recreate":
            update = UpdateConfig(order="stop-first", parallelism=0)
        else:
            update = UpdateConfig(
                order="start-first",
                parallelism=1,
                delay="10s",
                failure_action="rollback",
                monitor="60s",
                max_failure_ratio=0.3,
            )

        return DeployBlock(
            replicas=replicas if replicas > 1 else None,
            update_config=update,
            restart_policy=RestartPolicyBlock(condition="on-failure", delay="5s", max_attempts=3),
        )
