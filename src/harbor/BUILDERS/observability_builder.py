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
Builders for the built-in observability add-ons: the Dozzle log viewer and the
Beszel monitoring hub with its host agent.
"""
from typing import Dict

from ..MODELS.manifest import ComposeService, GenerateOptions
from ..MODELS.stack import Monitoring, Stack, TLSDomain
from ..UTILS.logger import get_logger
from .edge_builder import docker_socket_mount
from .environment import Environment
from .network_volume import EDGE_NETWORK
from .route_labels import (
    WEB_ENTRYPOINT,
    WEBSECURE_ENTRYPOINT,
    RouteLabels,
    basic_auth_middleware,
    default_entrypoints,
    docker_network_name,
    tls_enabled,
)

logger = get_logger(__name__)

LOG_VIEWER_SERVICE = "dozzle"
LOG_VIEWER_IMAGE = "amir20/dozzle:latest"
LOG_VIEWER_PORT = 8080

HUB_SERVICE = "beszel-hub"
HUB_IMAGE = "henrygd/beszel:latest"
HUB_PORT = 8090
AGENT_SERVICE = "beszel-agent"
AGENT_IMAGE = "henrygd/beszel-agent:latest"
AGENT_SOCKET = "/beszel_socket/beszel.sock"
DEFAULT_HUB_URL = f"http://{HUB_SERVICE}:{HUB_PORT}"

TOKEN_PLACEHOLDER = "CONFIGURE_TOKEN_IN_BESZEL_CONFIG"
KEY_PLACEHOLDER = "CONFIGURE_HUB_KEY_IN_BESZEL_CONFIG"


class ObservabilityBuilder:
    """
    Builds the log viewer and monitoring services. Each member is only built
    when enabled in the stack and not suppressed by the generation options.
    """

    def build(self, stack: Stack, env: Environment, options: GenerateOptions) -> Dict[str, ComposeService]:
        """
        :param stack: The stack being generated.
        :param env: The resolved environment.
        :param options: Generation options; a disable flag wins over the stack.
        :return: Observability services keyed by name.
        """
        services = {}
        observability = stack.observability

        if observability.log_viewer.enabled and not options.disable_log_viewer:
            services[LOG_VIEWER_SERVICE] = self.build_log_viewer(stack, env)

        if observability.monitoring.enabled and not options.disable_monitoring:
            services[HUB_SERVICE] = self.build_hub(stack, env)
            services[AGENT_SERVICE] = self.build_agent(stack)

        return services

    def build_log_viewer(self, stack: Stack, env: Environment) -> ComposeService:
        log_viewer = stack.observability.log_viewer

        labels = RouteLabels(LOG_VIEWER_SERVICE)
        labels.enable(docker_network_name(stack.project))
        labels.set_server_port(LOG_VIEWER_PORT)
        labels.set_host(f"{log_viewer.subdomain}.{stack.domain}")
        labels.set_entrypoints(default_entrypoints(env))
        if tls_enabled(env, stack.tls):
            labels.set_tls(cert_resolver=self._resolver(stack))
        if log_viewer.basic_auth is not None and log_viewer.basic_auth.enabled:
            labels.add_middleware(f"{LOG_VIEWER_SERVICE}-auth", basic_auth_middleware(log_viewer.basic_auth))

        return ComposeService(
            image=LOG_VIEWER_IMAGE,
            container_name=LOG_VIEWER_SERVICE,
            volumes=[
                docker_socket_mount(stack.observability.docker_socket),
                f"{log_viewer.data_volume}:/data",
            ],
            environment={"DOZZLE_LEVEL": "info", "DOZZLE_TAILSIZE": "300"},
            networks=["private", EDGE_NETWORK],
            restart="unless-stopped",
            labels=labels.build(),
        )

    def build_hub(self, stack: Stack, env: Environment) -> ComposeService:
        """
        Builds the monitoring hub. The hub has its own login, so proxy-level
        basic auth is never attached to its router.
        """
        monitoring = stack.observability.monitoring
        hostname = f"{monitoring.subdomain}.{stack.domain}"

        labels = RouteLabels(HUB_SERVICE)
        labels.enable(docker_network_name(stack.project))
        labels.set_server_port(HUB_PORT)
        labels.set_host(hostname)
        if env.is_production:
            labels.set_entrypoints([WEB_ENTRYPOINT, WEBSECURE_ENTRYPOINT])
        else:
            labels.set_entrypoints(default_entrypoints(env))
        if tls_enabled(env, stack.tls):
            labels.set_tls(cert_resolver=self._resolver(stack), domains=[TLSDomain(main=hostname)])

        environment = {"PORT": str(HUB_PORT)}
        if monitoring.app_url:
            environment["APP_URL"] = monitoring.app_url
        if monitoring.user_creation:
            environment["USER_CREATION"] = "true"

        return ComposeService(
            image=HUB_IMAGE,
            container_name=HUB_SERVICE,
            volumes=[
                f"{monitoring.data_volume}:/beszel_data",
                f"{monitoring.socket_volume}:/beszel_socket",
            ],
            environment=environment,
            networks=["private", EDGE_NETWORK],
            restart="unless-stopped",
            labels=labels.build(),
        )

    def build_agent(self, stack: Stack) -> ComposeService:
        """
        Builds the host agent. It runs on the host network to report host
        network statistics and talks to the hub over the shared socket volume.
        """
        monitoring = stack.observability.monitoring
        return ComposeService(
            image=AGENT_IMAGE,
            container_name=AGENT_SERVICE,
            environment=self._agent_environment(monitoring),
            volumes=[
                docker_socket_mount(stack.observability.docker_socket),
                f"{monitoring.socket_volume}:/beszel_socket",
                "./beszel_agent_data:/var/lib/beszel-agent",
            ],
            network_mode="host",
            restart="unless-stopped",
            user="0",
            privileged=False,
            security_opt=["no-new-privileges:true"],
        )

    def _agent_environment(self, monitoring: Monitoring) -> Dict[str, str]:
        environment = {
            "LISTEN": AGENT_SOCKET,
            "HUB_URL": monitoring.hub_url or DEFAULT_HUB_URL,
        }

        # Placeholders keep the deployment going; the agent rejects the hub until they are replaced
        if monitoring.token:
            environment["TOKEN"] = monitoring.token
        else:
            logger.warning(f"No monitoring token configured, {AGENT_SERVICE} gets placeholder {TOKEN_PLACEHOLDER}")
            environment["TOKEN"] = TOKEN_PLACEHOLDER

        if monitoring.public_key:
            environment["KEY"] = monitoring.public_key
        else:
            logger.warning(f"No hub public key configured, {AGENT_SERVICE} gets placeholder {KEY_PLACEHOLDER}")
            environment["KEY"] = KEY_PLACEHOLDER

        return environment

    @staticmethod
    def _resolver(stack: Stack) -> str:
        return stack.tls.resolver if stack.tls.mode == "acme" else ""
