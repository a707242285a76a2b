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
Merging of a single service's stack into a base (server) stack, used to
render one microservice against the shared platform configuration.
"""
from typing import Mapping, Optional

from ..MODELS.stack import Stack
from ..UTILS.logger import get_logger

logger = get_logger(__name__)


def merge_service_stack(service_stack: Stack, base_stack: Stack) -> Stack:
    """
    Combines a service stack with the base stack it deploys onto.

    The base decides everything shared by the platform (domain, environment,
    TLS, edge proxy and observability); the service stack contributes its own
    version, project, volumes and services. Networks are the union of both,
    with service entries replacing base entries of the same name.

    :param service_stack: The stack describing the service being deployed.
    :param base_stack: The platform stack.
    :return: The merged stack.
    """
    networks = dict(base_stack.networks)
    networks.update(service_stack.networks)

    merged = Stack(
        version=service_stack.version,
        project=service_stack.project,
        domain=base_stack.domain,
        environment=base_stack.environment,
        tls=base_stack.tls,
        edge=base_stack.edge,
        observability=base_stack.observability,
        networks={name: networks[name] for name in sorted(networks)},
        volumes=list(service_stack.volumes),
        services=list(service_stack.services),
    )
    logger.debug(f"Merged {service_stack.project} onto base stack for {base_stack.domain}")
    return merged


def apply_runtime_overrides(stack: Stack, env: Optional[Mapping[str, str]] = None,
                            replicas: Optional[int] = None) -> Stack:
    """
    Applies deploy-time overrides to every service.

    :param stack: The stack to adjust.
    :param env: Variables merged into each service's environment (they win).
    :param replicas: Replica count forced on each service.
    :return: A new stack.
    """
    if not env and replicas is None:
        return stack

    services = []
    for service in stack.services:
        update = {}
        if env:
            update["env"] = {**service.env, **env}
        if replicas is not None:
            update["replicas"] = replicas
        services.append(service.model_copy(update=update))
    return stack.model_copy(update={"services": services})
