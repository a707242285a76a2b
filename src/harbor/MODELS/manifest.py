# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Models for the generated docker-compose manifest.

Builders fill these typed entries; `Manifest.to_dict` turns them into the plain
map-of-maps shape only at the serialization boundary. Unset fields are `None`
and never reach the output.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

COMPOSE_VERSION = "3.9"


class GenerateOptions(BaseModel):
    """
    Options for a generation run. Either flag suppresses the matching
    observability component regardless of the stack's own settings.
    """
    disable_log_viewer: bool = False
    disable_monitoring: bool = False


class HealthCheckBlock(BaseModel):
    test: List[str]
    interval: str = "30s"
    timeout: str = "10s"
    retries: int = 3
    start_period: str = "60s"


class UpdateConfig(BaseModel):
    order: str
    parallelism: int
    delay: Optional[str] = None
    failure_action: Optional[str] = None
    monitor: Optional[str] = None
    max_failure_ratio: Optional[float] = None


class RestartPolicyBlock(BaseModel):
    condition: str = "on-failure"
    delay: str = "5s"
    max_attempts: int = 3


class ResourcesBlock(BaseModel):
    limits: Optional[Dict[str, str]] = None
    reservations: Optional[Dict[str, str]] = None


class DeployBlock(BaseModel):
    replicas: Optional[int] = None
    update_config: Optional[UpdateConfig] = None
    restart_policy: Optional[RestartPolicyBlock] = None
    resources: Optional[ResourcesBlock] = None


class SecretRef(BaseModel):
    source: str
    target: Optional[str] = None


class ComposeService(BaseModel):
    """
    A single entry under `services:`.
    """
    image: Optional[str] = None
    build: Optional[Dict[str, Any]] = None
    container_name: Optional[str] = None
    command: Optional[List[str]] = None
    expose: Optional[List[str]] = None
    ports: Optional[List[str]] = None
    environment: Optional[Dict[str, str]] = None
    env_file: Optional[List[str]] = None
    volumes: Optional[List[str]] = None
    secrets: Optional[List[SecretRef]] = None
    labels: Optional[Dict[str, str]] = None
    networks: Optional[List[str]] = None
    network_mode: Optional[str] = None
    restart: Optional[str] = None
    healthcheck: Optional[HealthCheckBlock] = None
    deploy: Optional[DeployBlock] = None
    runtime: Optional[str] = None
    shm_size: Optional[str] = None
    user: Optional[str] = None
    privileged: Optional[bool] = None
    read_only: Optional[bool] = None
    security_opt: Optional[List[str]] = None
    cap_drop: Optional[List[str]] = None
    cap_add: Optional[List[str]] = None
    tmpfs: Optional[List[str]] = None
    ulimits: Optional[Dict[str, Dict[str, int]]] = None


class ComposeNetwork(BaseModel):
    driver: str = "bridge"
    internal: Optional[bool] = None
    driver_opts: Optional[Dict[str, str]] = None


class ComposeVolume(BaseModel):
    """Named volume on the platform's default driver."""


class ComposeSecret(BaseModel):
    file: Optional[str] = None
    external: Optional[bool] = None


class Manifest(BaseModel):
    """
    The complete compose document.
    """
    version: str = COMPOSE_VERSION
    services: Dict[str, ComposeService] = {}
    networks: Dict[str, ComposeNetwork] = {}
    volumes: Dict[str, ComposeVolume] = {}
    secrets: Dict[str, ComposeSecret] = {}

    def to_dict(self) -> Dict[str, Any]:
        """
        Converts the manifest into plain dicts and lists, dropping unset fields
        and the `secrets` section when no service declares one.
        """
        data = self.model_dump(exclude_none=True)
        if not data.get("secrets"):
            data.pop("secrets", None)
        return data
