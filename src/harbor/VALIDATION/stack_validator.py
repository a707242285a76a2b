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
Semantic validation of a parsed stack, run before generation.

The schema only guarantees shapes; this module checks the rules the builders
rely on (required fields, mutually exclusive options, safe paths).
"""
import re
from typing import List

from ..BUILDERS.edge_builder import EDGE_SERVICE
from ..BUILDERS.observability_builder import AGENT_SERVICE, HUB_SERVICE, LOG_VIEWER_SERVICE
from ..errors import StackValidationError
from ..MODELS.stack import BasicAuth, Resources, Service, Stack
from ..UTILS.logger import get_logger

logger = get_logger(__name__)

SUPPORTED_VERSION = 1
TLS_MODES = ("acme", "selfsigned", "disabled")
REQUIRED_NETWORKS = ("public", "private")
SENSITIVE_TARGETS = ("/etc", "/proc", "/sys", "/dev", "/boot", "/root")
RESERVED_NAMES = (EDGE_SERVICE, LOG_VIEWER_SERVICE, HUB_SERVICE, AGENT_SERVICE)

SERVICE_NAME = re.compile(r"^[a-z0-9][a-z0-9_-]*$")
EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MEMORY = re.compile(r"^\d+(\.\d+)?[mMgG]$")
GPUS = re.compile(r"^(all|[1-9]\d*)$")


class StackValidator:
    """
    Applies stack defaults and collects every validation problem at once.
    """

    def apply_defaults(self, stack: Stack) -> Stack:
        """
        Fills in the defaults of the observability add-ons and the TLS resolver.
        When neither add-on is enabled, both are switched on.

        :param stack: The parsed stack.
        :return: A new stack with defaults applied.
        """
        observability = stack.observability
        log_viewer = observability.log_viewer
        monitoring = observability.monitoring

        if not log_viewer.enabled and not monitoring.enabled:
            logger.debug("No observability add-on enabled, enabling log viewer and monitoring")
            log_viewer = log_viewer.model_copy(update={"enabled": True})
            monitoring = monitoring.model_copy(update={"enabled": True})

        log_viewer = log_viewer.model_copy(update={"data_volume": log_viewer.data_volume or "dozzle_data"})
        monitoring = monitoring.model_copy(update={
            "data_volume": monitoring.data_volume or "beszel_data",
            "socket_volume": monitoring.socket_volume or "beszel_socket",
        })

        return stack.model_copy(update={
            "tls": stack.tls.model_copy(update={"resolver": stack.tls.resolver or "le"}),
            "observability": observability.model_copy(update={
                "log_viewer": log_viewer,
                "monitoring": monitoring,
            }),
        })

    def validate(self, stack: Stack):
        """
        Validates a stack.

        :param stack: The stack to check.
        :raises StackValidationError: Listing every problem found.
        """
        errors = self.check(stack)
        if errors:
            raise StackValidationError(errors)

    def check(self, stack: Stack) -> List[str]:
        """
        :return: Every problem found, in a stable order; empty when valid.
        """
        errors = []

        if stack.version != SUPPORTED_VERSION:
            errors.append(f"version: unsupported version {stack.version} (expected {SUPPORTED_VERSION})")
        if not stack.project:
            errors.append("project: required")
        if not stack.domain:
            errors.append("domain: required")

        errors += self._check_tls(stack)

        for name in REQUIRED_NETWORKS:
            if name not in stack.networks:
                errors.append(f"networks: '{name}' network is required")

        if not stack.services:
            errors.append("services: at least one service is required")

        seen = set()
        for index, service in enumerate(stack.services):
            label = service.name or f"services[{index}]"
            if service.name in seen:
                errors.append(f"{label}: duplicate service name")
            seen.add(service.name)
            errors += [f"{label}: {problem}" for problem in self._check_service(service)]

        log_viewer_auth = stack.observability.log_viewer.basic_auth
        if log_viewer_auth is not None:
            errors += [f"observability.dozzle: {p}" for p in self._check_basic_auth(log_viewer_auth)]

        return errors

    def _check_tls(self, stack: Stack) -> List[str]:
        errors = []
        tls = stack.tls
        if tls.mode not in TLS_MODES:
            errors.append(f"tls.mode: invalid mode {tls.mode!r} (expected one of {', '.join(TLS_MODES)})")
        if tls.mode == "acme":
            if not tls.email:
                errors.append("tls.email: required when mode is acme")
            elif not EMAIL.match(tls.email):
                errors.append(f"tls.email: invalid address {tls.email!r}")
        return errors

    def _check_service(self, service: Service) -> List[str]:
        errors = []

        if not service.name:
            errors.append("name: required")
        elif not SERVICE_NAME.match(service.name):
            errors.append("name: must be lowercase letters, digits, '-' or '_'")
        elif service.name in RESERVED_NAMES:
            errors.append(f"name: {service.name!r} is reserved for a built-in service")

        if service.image and service.build is not None:
            errors.append("use either image or build, not both")
        elif not service.image and service.build is None:
            errors.append("image or build is required")

        if service.expose <= 0:
            errors.append("expose: must be > 0")
        if service.replicas < 0:
            errors.append("replicas: cannot be negative")

        proxy = service.proxy
        if service.proxy_enabled and not service.subdomain and not getattr(proxy, "rule", ""):
            errors.append("subdomain: required when the service is routed without a custom rule")

        for mount in service.volumes:
            if not mount.source or not mount.target:
                errors.append("volumes: source and target are required")
            elif any(mount.target == p or mount.target.startswith(p + "/") for p in SENSITIVE_TARGETS):
                errors.append(f"volumes: mounting over {mount.target} is not allowed")

        for env_file in service.env_file:
            if ".." in env_file:
                errors.append(f"env_file: path traversal in {env_file!r}")

        for secret in service.secrets:
            if not secret.name:
                errors.append("secrets: name is required")
            elif not secret.file and not secret.external:
                errors.append(f"secrets: '{secret.name}' needs a file or external: true")
            if ".." in secret.file:
                errors.append(f"secrets: path traversal in {secret.file!r}")

        if service.basic_auth is not None:
            errors += self._check_basic_auth(service.basic_auth)

        if service.resources is not None:
            errors += self._check_resources(service.resources)

        return errors

    def _check_basic_auth(self, auth: BasicAuth) -> List[str]:
        if not auth.enabled:
            return []
        has_user = bool(auth.username and auth.password)
        if not has_user and not auth.users and not auth.users_file:
            return ["basic_auth: enabled but no users, username/password or users_file given"]
        return []

    def _check_resources(self, resources: Resources) -> List[str]:
        errors = []
        for field, value in (("memory", resources.memory), ("reserve_mem", resources.reserve_mem)):
            if value and not MEMORY.match(value):
                errors.append(f"resources.{field}: invalid memory {value!r} (use e.g. 512m or 1g)")
        for field, value in (("cpus", resources.cpus), ("reserve_cpu", resources.reserve_cpu)):
            if value and not self._positive_number(value):
                errors.append(f"resources.{field}: invalid cpu value {value!r}")
        if resources.gpus and not GPUS.match(resources.gpus):
            errors.append(f"resources.gpus: invalid value {resources.gpus!r} (use 'all' or a count)")
        return errors

    @staticmethod
    def _positive_number(value: str) -> bool:
        try:
            return float(value) > 0
        except ValueError:
            return False
