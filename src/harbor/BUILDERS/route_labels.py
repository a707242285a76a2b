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
Synthesis of Traefik docker-provider labels: routers, load-balancer services
and middlewares.
"""
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..MODELS.stack import BasicAuth, TLSDomain, TLSPolicy
from ..UTILS.flatten import flatten, format_value
from .environment import Environment
from .network_volume import EDGE_NETWORK

WEB_ENTRYPOINT = "web"
WEBSECURE_ENTRYPOINT = "websecure"

# Shared hardening chain referenced by every production router. The
# definitions are published once, on the edge proxy container.
SECURITY_CHAIN = ["security-headers", "rate-limit", "request-size"]

SECURITY_MIDDLEWARES: Dict[str, Dict[str, Any]] = {
    "security-headers": {
        "headers": {
            "stsSeconds": 31536000,
            "stsIncludeSubdomains": True,
            "stsPreload": True,
            "forceSTSHeader": True,
            "frameDeny": True,
            "contentTypeNosniff": True,
            "browserXssFilter": True,
            "referrerPolicy": "strict-origin-when-cross-origin",
        },
    },
    "rate-limit": {
        "rateLimit": {"average": 100, "burst": 50},
    },
    "request-size": {
        "buffering": {"maxRequestBodyBytes": 10485760},
    },
}

CIRCUIT_BREAKER_EXPRESSION = "NetworkErrorRatio() > 0.30"


def default_entrypoints(env: Environment) -> List[str]:
    """Plain HTTP locally, HTTPS in production."""
    return [WEB_ENTRYPOINT] if env.is_local else [WEBSECURE_ENTRYPOINT]


def docker_network_name(project: str) -> str:
    """
    Name of the edge network as the runtime sees it. Compose prefixes network
    keys with the project name.
    """
    return f"{project}_{EDGE_NETWORK}" if project else EDGE_NETWORK


def escape_dollars(value: str) -> str:
    """Doubles `$` so compose does not treat hash segments as variables."""
    return value.replace("$", "$$")


def basic_auth_users(auth: BasicAuth) -> List[str]:
    """
    Lists `user:hash` entries: the legacy single user first, then the users
    map sorted by name.
    """
    users = []
    if auth.username and auth.password:
        users.append(f"{auth.username}:{escape_dollars(auth.password)}")
    for username in sorted(auth.users):
        users.append(f"{username}:{escape_dollars(auth.users[username])}")
    return users


def basic_auth_middleware(auth: BasicAuth) -> Dict[str, Any]:
    """
    Middleware definition for a basic-auth spec, from inline users and/or an
    htpasswd file reference.
    """
    settings: Dict[str, Any] = {}
    users = basic_auth_users(auth)
    if users:
        settings["users"] = users
    if auth.users_file:
        settings["usersFile"] = auth.users_file
    return {"basicAuth": settings}


def circuit_breaker_middleware() -> Dict[str, Any]:
    return {"circuitBreaker": {"expression": CIRCUIT_BREAKER_EXPRESSION}}


def tls_enabled(env: Environment, policy: TLSPolicy) -> bool:
    """Routers only terminate TLS in production, and never when TLS is disabled."""
    return env.is_production and policy.mode != "disabled"


class RouteLabels:
    """
    Ordered builder for the labels of one router and its load-balancer service.

    Setters record `(key, value)` pairs; `build` flattens them once, adding the
    middleware chain and finally the free-form overrides, so later branches
    cannot silently clobber earlier ones.
    """

    def __init__(self, router: str, service: Optional[str] = None):
        """
        :param router: Router name.
        :param service: Load-balancer service name; defaults to the router name.
        """
        self.router = router
        self.service = service or router
        self._pairs: List[Tuple[str, str]] = []
        self._middlewares: List[str] = []
        self._overrides: Dict[str, str] = {}

    @property
    def middlewares(self) -> List[str]:
        return list(self._middlewares)

    def _set(self, key: str, value: Any):
        self._pairs.append((key, format_value(value)))

    def _router(self, suffix: str) -> str:
        return f"traefik.http.routers.{self.router}.{suffix}"

    def _loadbalancer(self, suffix: str) -> str:
        return f"traefik.http.services.{self.service}.loadbalancer.{suffix}"

    def enable(self, docker_network: str) -> "RouteLabels":
        self._set("traefik.enable", True)
        self._set("traefik.docker.network", docker_network)
        return self

    def set_server_port(self, port: int) -> "RouteLabels":
        self._set(self._loadbalancer("server.port"), port)
        return self

    def set_rule(self, rule: str) -> "RouteLabels":
        self._set(self._router("rule"), rule)
        return self

    def set_host(self, hostname: str) -> "RouteLabels":
        return self.set_rule(f"Host(`{hostname}`)")

    def set_entrypoints(self, entrypoints: Sequence[str]) -> "RouteLabels":
        self._set(self._router("entrypoints"), list(entrypoints))
        return self

    def set_tls(self, cert_resolver: str = "", options: str = "",
                domains: Iterable[TLSDomain] = ()) -> "RouteLabels":
        """
        Terminates TLS on the router.

        :param cert_resolver: Certificate resolver; empty uses the proxy's default certificate.
        :param options: Named TLS options.
        :param domains: Explicit certificate domains.
        """
        self._set(self._router("tls"), True)
        if cert_resolver:
            self._set(self._router("tls.certresolver"), cert_resolver)
        if options:
            self._set(self._router("tls.options"), options)
        domain_data = [{"main": d.main, "sans": d.sans or None} for d in domains]
        for key, value in flatten(self._router("tls.domains"), domain_data):
            self._pairs.append((key, value))
        return self

    def add_middleware(self, name: str, definition: Optional[Mapping[str, Any]] = None) -> "RouteLabels":
        """
        Appends a middleware to the router's chain, optionally defining it.

        :param name: Middleware name (may carry a provider suffix such as `@file`).
        :param definition: `{type: settings}` to publish as labels, or `None` for a
            middleware defined elsewhere.
        """
        self._middlewares.append(name)
        if definition:
            for key, value in flatten(f"traefik.http.middlewares.{name}", dict(definition)):
                self._pairs.append((key, value))
        return self

    def set_health_check(self, path: str = "", interval: str = "", timeout: str = "",
                         **extra: Any) -> "RouteLabels":
        if path:
            self._set(self._loadbalancer("healthcheck.path"), path)
        if interval:
            self._set(self._loadbalancer("healthcheck.interval"), interval)
        if timeout:
            self._set(self._loadbalancer("healthcheck.timeout"), timeout)
        for key, value in flatten(self._loadbalancer("healthcheck"), extra):
            self._pairs.append((key, value))
        return self

    def set_flush_interval(self, interval: str) -> "RouteLabels":
        self._set(self._loadbalancer("responseforwarding.flushinterval"), interval)
        return self

    def set_sticky(self, name: str, secure: bool = True, http_only: bool = True,
                   same_site: str = "strict") -> "RouteLabels":
        self._set(self._loadbalancer("sticky.cookie"), True)
        self._set(self._loadbalancer("sticky.cookie.name"), name)
        self._set(self._loadbalancer("sticky.cookie.secure"), secure)
        self._set(self._loadbalancer("sticky.cookie.httponly"), http_only)
        self._set(self._loadbalancer("sticky.cookie.samesite"), same_site)
        return self

    def set_priority(self, priority: int) -> "RouteLabels":
        self._set(self._router("priority"), priority)
        return self

    def set_pass_host_header(self, enabled: bool) -> "RouteLabels":
        self._set(self._loadbalancer("passhostheader"), enabled)
        return self

    def set_servers_transport(self, name: str) -> "RouteLabels":
        self._set(self._loadbalancer("serverstransport"), name)
        return self

    def override(self, labels: Mapping[str, str]) -> "RouteLabels":
        """Free-form labels applied after everything else."""
        self._overrides.update(labels)
        return self

    def build(self) -> Dict[str, str]:
        labels: Dict[str, str] = {}
        for key, value in self._pairs:
            labels[key] = value
        if self._middlewares:
            labels[self._router("middlewares")] = ",".join(self._middlewares)
        labels.update(self._overrides)
        return labels
