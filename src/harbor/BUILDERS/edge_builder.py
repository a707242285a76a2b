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
Builder for the edge proxy (Traefik) container: startup arguments, certificate
resolver, shared middleware definitions and hardening.
"""
from typing import Any, Dict, List, Optional

from ..MODELS.manifest import ComposeService, DeployBlock, ResourcesBlock
from ..MODELS.stack import EdgeConfig, Stack, TLSPolicy
from ..UTILS.flatten import flatten
from ..UTILS.logger import get_logger
from .environment import Environment
from .network_volume import EDGE_NETWORK
from .route_labels import SECURITY_MIDDLEWARES, docker_network_name

logger = get_logger(__name__)

EDGE_SERVICE = "traefik"
EDGE_IMAGE = "traefik:v3.5"
DEFAULT_DOCKER_SOCKET = "/var/run/docker.sock"
ACME_VOLUME = "traefik_acme"
ACME_STORAGE = "/letsencrypt/acme.json"
DEFAULT_PORTS = ["80:80", "443:443"]


def docker_socket_mount(socket_path: str = "") -> str:
    """Read-only mount of the container runtime socket at its usual location."""
    return f"{socket_path or DEFAULT_DOCKER_SOCKET}:{DEFAULT_DOCKER_SOCKET}:ro"


def default_arguments(project: str, env: Environment) -> List[str]:
    """
    Startup arguments of the edge proxy when the stack does not provide its own.

    Containers are only exposed when they opt in, the dashboard and API are
    closed, and production redirects plain HTTP to HTTPS.
    """
    args = [
        "--providers.docker=true",
        "--providers.docker.exposedbydefault=false",
        f"--providers.docker.network={docker_network_name(project)}",
        "--entrypoints.web.address=:80",
        "--entrypoints.websecure.address=:443",
        "--api.dashboard=false",
        "--api.insecure=false",
        "--log.level=INFO",
        "--global.checknewversion=false",
        "--global.sendanonymoususage=false",
    ]
    if env.is_production:
        args += [
            "--entrypoints.websecure.http.tls=true",
            "--entrypoints.web.http.redirections.entrypoint.to=websecure",
            "--entrypoints.web.http.redirections.entrypoint.scheme=https",
            "--entrypoints.web.http.redirections.entrypoint.permanent=true",
            "--entrypoints.websecure.transport.respondingtimeouts.readtimeout=60s",
            "--entrypoints.websecure.transport.respondingtimeouts.writetimeout=60s",
            "--entrypoints.websecure.transport.respondingtimeouts.idletimeout=180s",
        ]
    return args


def acme_enabled(env: Environment, policy: TLSPolicy) -> bool:
    return env.is_production and policy.mode == "acme"


def _as_args(pairs) -> List[str]:
    return [f"{key}={value}" for key, value in pairs]


def _replace(args: List[str], prefix: str, new_args: List[str]) -> List[str]:
    """Drops every argument under `prefix` and appends `new_args`."""
    if not new_args:
        return args
    return [a for a in args if not a.startswith(prefix)] + new_args


class EdgeBuilder:
    """
    Builds the `traefik` service of the manifest.

    Without a stack-level `traefik` block the container is synthesized from
    defaults; with one, the block's image, arguments, ports, volumes,
    environment and labels are honoured and its entry points, providers,
    plugins and logging blocks are rendered on top.
    """

    def build(self, stack: Stack, env: Environment) -> ComposeService:
        """
        :param stack: The stack being generated.
        :param env: The resolved environment.
        :return: The edge proxy service.
        """
        edge = stack.edge
        socket_mount = docker_socket_mount(stack.observability.docker_socket)

        if edge is None:
            entry = ComposeService(
                image=EDGE_IMAGE,
                command=default_arguments(stack.project, env),
                ports=list(DEFAULT_PORTS),
                volumes=[socket_mount],
            )
            labels = self._labels(env)
        else:
            entry = ComposeService(
                image=edge.image or EDGE_IMAGE,
                command=self._custom_arguments(edge, stack.project, env),
                ports=list(edge.ports) or list(DEFAULT_PORTS),
                volumes=[socket_mount] + list(edge.volumes),
            )
            labels = self._labels(env, edge)

        entry.networks = ["public", "private", EDGE_NETWORK]
        entry.restart = "always"

        environment: Dict[str, str] = {}
        if acme_enabled(env, stack.tls):
            environment.update(self._acme(stack.tls, entry))
        if edge is not None:
            environment.update(edge.environment)
        if environment:
            entry.environment = environment

        entry.labels = labels

        if env.is_production:
            self._harden(entry)

        logger.debug(f"Built edge proxy ({'custom' if edge else 'default'}, {env.value})")
        return entry

    def _custom_arguments(self, edge: EdgeConfig, project: str, env: Environment) -> List[str]:
        args = list(edge.commands) or default_arguments(project, env)

        for name in sorted(edge.entrypoints):
            entrypoint = edge.entrypoints[name]
            prefix = f"--entrypoints.{name}"
            args.append(f"{prefix}.address={entrypoint.address}")
            if entrypoint.as_default:
                args.append(f"{prefix}.asdefault=true")
            args += _as_args(flatten(f"{prefix}.http", entrypoint.http))
            args += _as_args(flatten(f"{prefix}.transport", entrypoint.transport))
            args += _as_args(flatten(f"{prefix}.proxyprotocol", entrypoint.proxy_protocol))

        for kind in sorted(edge.providers):
            settings = edge.providers[kind]
            if not settings:
                args.append(f"--providers.{kind}=true")
            args += _as_args(flatten(f"--providers.{kind}", settings))

        for name in sorted(edge.plugins):
            plugin = edge.plugins[name]
            prefix = f"--experimental.plugins.{name}"
            args.append(f"{prefix}.modulename={plugin.module_name}")
            if plugin.version:
                args.append(f"{prefix}.version={plugin.version}")
            args += _as_args(flatten(f"{prefix}.settings", plugin.settings))

        if edge.api is not None:
            args = _replace(args, "--api.", [
                f"--api.dashboard={str(edge.api.dashboard).lower()}",
                f"--api.insecure={str(edge.api.insecure).lower()}",
                f"--api.debug={str(edge.api.debug).lower()}",
            ])

        if edge.log is not None:
            log_args = []
            if edge.log.level:
                log_args.append(f"--log.level={edge.log.level}")
            if edge.log.format:
                log_args.append(f"--log.format={edge.log.format}")
            if edge.log.file_path:
                log_args.append(f"--log.filepath={edge.log.file_path}")
            args = _replace(args, "--log.", log_args)

        if edge.access_log is not None:
            access_log = edge.access_log
            args.append("--accesslog=true")
            if access_log.file_path:
                args.append(f"--accesslog.filepath={access_log.file_path}")
            if access_log.format:
                args.append(f"--accesslog.format={access_log.format}")
            args += _as_args(flatten("--accesslog.filters", access_log.filters))
            args += _as_args(flatten("--accesslog.fields", access_log.field_names))

        if edge.metrics is not None:
            for kind, settings in edge.metrics.model_dump(exclude_none=True).items():
                args.append(f"--metrics.{kind}=true")
                args += _as_args(flatten(f"--metrics.{kind}", settings))

        return args

    def _acme(self, policy: TLSPolicy, entry: ComposeService) -> Dict[str, str]:
        """
        Appends the certificate resolver arguments and storage volume.

        :return: Environment variables required by the DNS challenge provider.
        """
        resolver = policy.resolver
        prefix = f"--certificatesresolvers.{resolver}.acme"
        if any(arg.startswith(prefix) for arg in entry.command):
            return {}

        entry.command += [f"{prefix}.email={policy.email}", f"{prefix}.storage={ACME_STORAGE}"]
        entry.volumes.append(f"{ACME_VOLUME}:/letsencrypt")

        environment = {}
        dns = policy.dns_challenge
        if dns is not None and dns.provider:
            entry.command += [f"{prefix}.dnschallenge=true", f"{prefix}.dnschallenge.provider={dns.provider}"]
            for variable in dns.env:
                key, sep, value = variable.partition("=")
                if sep:
                    environment[key] = value
                else:
                    logger.warning(f"Ignoring DNS challenge variable without a value: {variable}")
        else:
            entry.command += [f"{prefix}.httpchallenge=true", f"{prefix}.httpchallenge.entrypoint=web"]
        return environment

    def _labels(self, env: Environment, edge: Optional[EdgeConfig] = None) -> Dict[str, str]:
        """
        Labels of the proxy container itself. Middleware definitions published
        here become available to every router through label discovery.
        """
        definitions: Dict[str, Dict[str, Any]] = {}
        if env.is_production:
            definitions.update(SECURITY_MIDDLEWARES)
        if edge is not None:
            definitions.update(edge.middlewares)

        labels = {"traefik.enable": "true" if definitions else "false"}
        for name in sorted(definitions):
            for key, value in flatten(f"traefik.http.middlewares.{name}", definitions[name]):
                labels[key] = value
        if edge is not None:
            labels.update(edge.labels)
        return labels

    def _harden(self, entry: ComposeService):
        entry.security_opt = ["no-new-privileges:true"]
        entry.read_only = True
        entry.tmpfs = ["/tmp:rw,noexec,nosuid,size=100m"]
        entry.deploy = DeployBlock(resources=ResourcesBlock(
            limits={"cpus": "1.0", "memory": "512M"},
            reservations={"cpus": "0.25", "memory": "128M"},
        ))
