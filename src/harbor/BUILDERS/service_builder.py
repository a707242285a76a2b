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
Builder for the manifest entry of a declared service, including the Traefik
routing labels, network placement and production hardening.
"""
from typing import Dict, List, Optional

from ..MODELS.manifest import ComposeService, DeployBlock, ResourcesBlock, SecretRef
from ..MODELS.stack import ProxyStructured, Resources, Service, Stack, StickyCookie
from ..UTILS.logger import get_logger
from .environment import Environment
from .network_volume import EDGE_NETWORK
from .route_labels import (
    SECURITY_CHAIN,
    RouteLabels,
    basic_auth_middleware,
    circuit_breaker_middleware,
    default_entrypoints,
    docker_network_name,
    tls_enabled,
)
from .strategies import DEFAULT_HEALTH_PATH, DeployStrategy, HealthCheckBuilder

logger = get_logger(__name__)

PRIVATE_NETWORK = "private"
PUBLIC_NETWORK = "public"

LB_HEALTH_INTERVAL = "30s"
LB_HEALTH_TIMEOUT = "10s"
LB_FLUSH_INTERVAL = "100ms"

HARDENED_CAP_ADD = ["CHOWN", "SETGID", "SETUID"]
HARDENED_TMPFS = [
    "/tmp:rw,noexec,nosuid,size=100m",
    "/var/tmp:rw,noexec,nosuid,size=50m",
]
HARDENED_ULIMITS = {
    "nofile": {"soft": 65536, "hard": 65536},
    "nproc": {"soft": 4096, "hard": 4096},
}
HARDENED_USER = "1000:1000"


class ServiceBuilder:
    """
    Builds one compose service per declared service.
    """

    def __init__(self, health_checker: Optional[HealthCheckBuilder] = None,
                 deploy_strategy: Optional[DeployStrategy] = None):
        self.health_checker = health_checker or HealthCheckBuilder()
        self.deploy_strategy = deploy_strategy or DeployStrategy()

    def build(self, service: Service, stack: Stack, env: Environment) -> ComposeService:
        """
        Builds the manifest entry of a service.

        :param service: The declared service.
        :param stack: The stack it belongs to (domain, project and TLS policy).
        :param env: The resolved environment.
        :return: The compose service.
        """
        entry = ComposeService(restart="unless-stopped")

        # A fixed container name would prevent compose from scaling the service
        if service.replicas <= 1:
            entry.container_name = service.name

        if service.build is not None:
            build = {"context": service.build.context, "dockerfile": service.build.dockerfile}
            if service.build.args:
                build["args"] = dict(service.build.args)
            entry.build = build
        elif service.image:
            entry.image = service.image

        if service.expose > 0:
            entry.expose = [str(service.expose)]

        environment = dict(service.env)
        if service.env_file:
            entry.env_file = list(service.env_file)
        if service.volumes:
            entry.volumes = [self._mount(m.source, m.target, m.read_only) for m in service.volumes]
        if service.secrets:
            entry.secrets = [SecretRef(source=s.name, target=s.target or None) for s in service.secrets]

        entry.healthcheck = self.health_checker.build(service.health_check, service.expose)
        entry.deploy = self.deploy_strategy.build(service.deploy, service.replicas)

        ulimits: Dict[str, Dict[str, int]] = {}
        if env.is_production:
            self._harden(entry)
            ulimits.update(HARDENED_ULIMITS)
        if service.resources is not None:
            self._apply_resources(entry, entry.deploy, service.resources, environment)
            for name, limit in service.resources.ulimits.items():
                ulimits[name] = {"soft": limit.soft, "hard": limit.hard}
        if ulimits:
            entry.ulimits = ulimits

        if environment:
            entry.environment = environment

        if service.proxy_enabled:
            entry.labels = self.build_labels(service, stack, env)

        entry.networks = self.build_networks(service)

        logger.debug(f"Built service {service.name} ({env.value}, proxied={service.proxy_enabled})")
        return entry

    def build_networks(self, service: Service) -> List[str]:
        """
        Places the service on the private network, plus the edge network when
        routed and the public network when it asked for (and is allowed) egress.
        """
        networks = [PRIVATE_NETWORK]
        if service.proxy_enabled:
            networks.append(EDGE_NETWORK)

        access = service.network_access
        if access is not None:
            if access.internet and not access.internal:
                networks.append(PUBLIC_NETWORK)
            for name in access.custom:
                if name not in networks:
                    networks.append(name)
        return networks

    def hostname(self, service: Service, domain: str) -> str:
        return f"{service.subdomain}.{domain}" if service.subdomain else domain

    def build_labels(self, service: Service, stack: Stack, env: Environment) -> Dict[str, str]:
        """
        Synthesizes the router, middleware chain and load-balancer labels of a
        routed service.
        """
        structured = service.proxy if isinstance(service.proxy, ProxyStructured) else None
        name = service.name

        labels = RouteLabels(name)
        labels.enable(docker_network_name(stack.project))
        if service.expose > 0:
            labels.set_server_port(service.expose)

        if structured is not None and structured.rule:
            labels.set_rule(structured.rule)
        else:
            labels.set_host(self.hostname(service, stack.domain))

        entrypoints = structured.entrypoints if structured is not None else []
        labels.set_entrypoints(entrypoints or default_entrypoints(env))

        if structured is not None and structured.priority is not None:
            labels.set_priority(structured.priority)

        if tls_enabled(env, stack.tls):
            override = structured.tls if structured is not None else None
            resolver = stack.tls.resolver if stack.tls.mode == "acme" else ""
            if override is not None and override.cert_resolver:
                resolver = override.cert_resolver
            labels.set_tls(
                cert_resolver=resolver,
                options=override.options if override is not None else "",
                domains=override.domains if override is not None else (),
            )

        # Middleware chain: explicit list or the production defaults, then auth, then breaker
        if structured is not None and structured.middlewares is not None:
            for middleware in structured.middlewares:
                labels.add_middleware(middleware)
        elif env.is_production:
            for middleware in SECURITY_CHAIN:
                labels.add_middleware(middleware)

        if service.basic_auth is not None and service.basic_auth.enabled:
            labels.add_middleware(f"{name}-auth", basic_auth_middleware(service.basic_auth))

        if env.is_production:
            labels.add_middleware(f"{name}-timeout", circuit_breaker_middleware())

        self._apply_load_balancer(labels, service, structured, env)

        if structured is not None and structured.labels:
            labels.override(structured.labels)

        return labels.build()

    def _apply_load_balancer(self, labels: RouteLabels, service: Service,
                             structured: Optional[ProxyStructured], env: Environment):
        lb = structured.load_balancer if structured is not None else None
        lb_check = lb.health_check if lb is not None else None

        path = lb_check.path if lb_check is not None else ""
        if not path and service.health_check is not None and service.health_check.enabled:
            path = service.health_check.path or DEFAULT_HEALTH_PATH
        interval = lb_check.interval if lb_check is not None else ""
        timeout = lb_check.timeout if lb_check is not None else ""
        if env.is_production:
            interval = interval or LB_HEALTH_INTERVAL
            timeout = timeout or LB_HEALTH_TIMEOUT

        extra = {}
        if lb_check is not None:
            extra = lb_check.model_dump(
                by_alias=True,
                exclude_none=True,
                exclude={"path", "interval", "timeout"},
            )
            extra = {k: v for k, v in extra.items() if v not in ("", {})}
        labels.set_health_check(path=path, interval=interval, timeout=timeout, **extra)

        flush = ""
        if lb is not None and lb.response_forwarding is not None:
            flush = lb.response_forwarding.flush_interval
        if not flush and env.is_production:
            flush = LB_FLUSH_INTERVAL
        if flush:
            labels.set_flush_interval(flush)

        sticky_override = lb.sticky if lb is not None else None
        if service.replicas > 1 or sticky_override is not None:
            cookie = sticky_override.cookie if sticky_override is not None else StickyCookie()
            labels.set_sticky(
                name=cookie.name or f"_{service.name}_server",
                secure=cookie.secure,
                http_only=cookie.http_only,
                same_site=cookie.same_site,
            )

        if lb is not None and lb.pass_host_header is not None:
            labels.set_pass_host_header(lb.pass_host_header)
        if lb is not None and lb.servers_transport:
            labels.set_servers_transport(lb.servers_transport)

    def _apply_resources(self, entry: ComposeService, deploy: DeployBlock,
                         resources: Resources, environment: Dict[str, str]):
        limits = {}
        if resources.cpus:
            limits["cpus"] = resources.cpus
        if resources.memory:
            limits["memory"] = resources.memory

        reservations = {}
        if resources.reserve_cpu:
            reservations["cpus"] = resources.reserve_cpu
        if resources.reserve_mem:
            reservations["memory"] = resources.reserve_mem

        if limits or reservations:
            deploy.resources = ResourcesBlock(limits=limits or None, reservations=reservations or None)

        if resources.gpus:
            entry.runtime = "nvidia"
            environment["NVIDIA_VISIBLE_DEVICES"] = resources.gpus

        if resources.shm_size:
            entry.shm_size = resources.shm_size

    def _harden(self, entry: ComposeService):
        entry.security_opt = ["no-new-privileges:true"]
        entry.cap_drop = ["ALL"]
        entry.cap_add = list(HARDENED_CAP_ADD)
        entry.tmpfs = list(HARDENED_TMPFS)
        entry.user = HARDENED_USER

    @staticmethod
    def _mount(source: str, target: str, read_only: bool = False) -> str:
        mount = f"{source}:{target}"
        return f"{mount}:ro" if read_only else mount
