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
Models for the stack description: domain, TLS policy, services and the
built-in observability add-ons.

Field names are Pythonic; the YAML keys of the stack file are kept as aliases.
"""
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator


def _stringify(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return value


def _stringify_map(value: Any) -> Any:
    """YAML turns `PORT: 8080` or `DEBUG: true` into non-strings; compose wants strings."""
    if isinstance(value, dict):
        return {str(k): ("" if v is None else _stringify(v)) for k, v in value.items()}
    return value


StrMap = Annotated[Dict[str, str], BeforeValidator(_stringify_map)]
Scalar = Annotated[str, BeforeValidator(_stringify)]


class StackModel(BaseModel):
    """
    Base for every stack entity: immutable, addressable by YAML key or attribute name.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)


# --- TLS -------------------------------------------------------------------

class DNSChallenge(StackModel):
    """DNS-01 challenge provider and the `KEY=VALUE` variables it needs."""
    provider: str = ""
    env: List[str] = []


class TLSPolicy(StackModel):
    """
    Certificate policy for the whole stack.
    """
    mode: str = "disabled"  # acme | selfsigned | disabled
    email: str = ""
    resolver: str = "le"
    dns_challenge: Optional[DNSChallenge] = Field(None, alias="dnsChallenge")


# --- Networks and volumes --------------------------------------------------

class Network(StackModel):
    internal: bool = False


class Volume(StackModel):
    name: str


# --- Service building blocks -----------------------------------------------

class BuildSpec(StackModel):
    context: str = "."
    dockerfile: str = "Dockerfile"
    args: StrMap = {}


class VolumeMount(StackModel):
    source: str = ""
    target: str = ""
    read_only: bool = False


class Secret(StackModel):
    """
    A secret referenced by a service. `name` is the manifest-wide key.
    """
    name: str = ""
    file: str = ""
    external: bool = False
    target: str = ""


class Ulimit(StackModel):
    soft: int
    hard: int


class Resources(StackModel):
    """
    Resource limits. CPU and memory are kept as strings ("0.5", "512m").
    """
    memory: Optional[Scalar] = None
    cpus: Optional[Scalar] = None
    gpus: Optional[Scalar] = None
    shm_size: Optional[Scalar] = None
    ulimits: Dict[str, Ulimit] = {}
    reserve_cpu: Optional[Scalar] = None
    reserve_mem: Optional[Scalar] = None


class HealthCheckSpec(StackModel):
    enabled: bool = False
    path: str = ""
    interval: str = ""
    timeout: str = ""
    retries: int = 0
    start_period: str = ""


class DeploySpec(StackModel):
    strategy: str = "rolling"  # rolling | recreate


class NetworkAccess(StackModel):
    """
    Network placement policy. Services are private-only unless `internet` is set;
    `internal` vetoes public access even when `internet` asks for it.
    """
    internet: bool = False
    internal: bool = False
    custom: List[str] = []


class BasicAuth(StackModel):
    """
    Proxy-level basic auth. Passwords are already hashed (htpasswd format).
    """
    enabled: bool = False
    username: str = ""
    password: str = ""
    users: StrMap = {}
    users_file: str = ""


# --- Per-service proxy configuration ---------------------------------------

class TLSDomain(StackModel):
    main: str
    sans: List[str] = []


class ProxyTLS(StackModel):
    cert_resolver: str = Field("", alias="certResolver")
    domains: List[TLSDomain] = []
    options: str = ""


class StickyCookie(StackModel):
    name: str = ""
    secure: bool = True
    http_only: bool = Field(True, alias="httpOnly")
    same_site: str = Field("strict", alias="sameSite")


class Sticky(StackModel):
    cookie: StickyCookie = Field(default_factory=StickyCookie)


class LBHealthCheck(StackModel):
    path: str = ""
    port: Optional[int] = None
    interval: str = ""
    timeout: str = ""
    hostname: str = ""
    method: str = ""
    scheme: str = ""
    status: Optional[int] = None
    follow_redirects: Optional[bool] = Field(None, alias="followRedirects")
    headers: StrMap = {}


class ResponseForwarding(StackModel):
    flush_interval: str = Field("", alias="flushInterval")


class LoadBalancer(StackModel):
    sticky: Optional[Sticky] = None
    health_check: Optional[LBHealthCheck] = Field(None, alias="healthCheck")
    pass_host_header: Optional[bool] = Field(None, alias="passHostHeader")
    response_forwarding: Optional[ResponseForwarding] = Field(None, alias="responseForwarding")
    servers_transport: str = Field("", alias="serversTransport")

    @field_validator("sticky", mode="before")
    @classmethod
    def _sticky_flag(cls, value):
        # `sticky: true` is shorthand for a default cookie
        if value is True:
            return {}
        if value is False:
            return None
        return value


class ProxyDisabled(StackModel):
    """The service is not routed through the edge proxy."""
    kind: Literal["disabled"] = "disabled"


class ProxySimple(StackModel):
    """Legacy `traefik: true`: route with every default."""
    kind: Literal["simple"] = "simple"


class ProxyStructured(StackModel):
    """
    Full per-service routing override. Anything left unset falls back to the
    environment-aware default.
    """
    kind: Literal["structured"] = "structured"
    rule: str = ""
    entrypoints: List[str] = []
    middlewares: Optional[List[str]] = None
    priority: Optional[int] = None
    tls: Optional[ProxyTLS] = None
    load_balancer: Optional[LoadBalancer] = Field(None, alias="loadBalancer")
    labels: StrMap = {}


ProxyConfig = Annotated[
    Union[ProxyDisabled, ProxySimple, ProxyStructured],
    Field(discriminator="kind"),
]


def resolve_proxy(value: Any) -> Any:
    """
    Resolves the polymorphic `traefik` field (absent, bool or mapping) into
    the data of one proxy variant.
    """
    if value is None or value is False:
        return {"kind": "disabled"}
    if value is True:
        return {"kind": "simple"}
    if isinstance(value, dict):
        if "kind" in value:
            return value
        data = dict(value)
        if not data.pop("enabled", True):
            return {"kind": "disabled"}
        data["kind"] = "structured"
        return data
    return value


class Service(StackModel):
    """
    One declared service. Exactly one of `image` and `build` is expected.
    """
    name: str = ""
    subdomain: str = ""
    image: str = ""
    build: Optional[BuildSpec] = None
    expose: int = 0
    replicas: int = 0
    env: StrMap = {}
    env_file: List[str] = []
    secrets: List[Secret] = []
    volumes: List[VolumeMount] = []
    resources: Optional[Resources] = None
    health_check: Optional[HealthCheckSpec] = None
    deploy: Optional[DeploySpec] = None
    proxy: ProxyConfig = Field(default_factory=ProxyDisabled, alias="traefik")
    basic_auth: Optional[BasicAuth] = None
    network_access: Optional[NetworkAccess] = None

    @field_validator("proxy", mode="before")
    @classmethod
    def _resolve_proxy(cls, value):
        return resolve_proxy(value)

    @property
    def proxy_enabled(self) -> bool:
        return not isinstance(self.proxy, ProxyDisabled)


# --- Observability ---------------------------------------------------------

class LogViewer(StackModel):
    """Dozzle log viewer."""
    enabled: bool = False
    subdomain: str = "logs"
    data_volume: str = "dozzle_data"
    basic_auth: Optional[BasicAuth] = None


class Monitoring(StackModel):
    """
    Beszel monitoring hub and agent. The agent trusts the hub through the
    pre-shared `public_key` / `token` pair.
    """
    enabled: bool = False
    subdomain: str = "monitor"
    data_volume: str = "beszel_data"
    socket_volume: str = "beszel_socket"
    public_key: str = ""
    token: str = ""
    hub_url: str = ""
    app_url: str = ""
    user_creation: bool = False


class Observability(StackModel):
    log_viewer: LogViewer = Field(default_factory=LogViewer, alias="dozzle")
    monitoring: Monitoring = Field(default_factory=Monitoring, alias="beszel")
    docker_socket: str = ""


# --- Edge proxy override ---------------------------------------------------

class EdgePlugin(StackModel):
    module_name: str = Field(alias="moduleName")
    version: str = ""
    settings: Dict[str, Any] = {}


class EdgeEntryPoint(StackModel):
    address: str
    as_default: bool = Field(False, alias="asDefault")
    http: Dict[str, Any] = {}
    transport: Dict[str, Any] = {}
    proxy_protocol: Dict[str, Any] = Field(default_factory=dict, alias="proxyProtocol")


class EdgeAPI(StackModel):
    dashboard: bool = False
    debug: bool = False
    insecure: bool = False


class EdgeLog(StackModel):
    level: str = ""
    format: str = ""
    file_path: str = Field("", alias="filePath")


class EdgeAccessLog(StackModel):
    file_path: str = Field("", alias="filePath")
    format: str = ""
    filters: Dict[str, Any] = {}
    field_names: Dict[str, Any] = Field(default_factory=dict, alias="fields")


class EdgeMetrics(StackModel):
    prometheus: Optional[Dict[str, Any]] = None
    datadog: Optional[Dict[str, Any]] = None
    statsd: Optional[Dict[str, Any]] = Field(None, alias="statsD")
    influxdb2: Optional[Dict[str, Any]] = Field(None, alias="influxDB")


class EdgeConfig(StackModel):
    """
    Full override of the edge proxy container (stack-level `traefik` key).

    `middlewares` maps a middleware name to `{type: settings}`, e.g.
    `{"strip-api": {"stripPrefix": {"prefixes": ["/api"]}}}`. `providers` maps a
    provider kind to its settings.
    """
    image: str = ""
    commands: List[str] = []
    labels: StrMap = {}
    ports: List[str] = []
    volumes: List[str] = []
    environment: StrMap = {}
    middlewares: Dict[str, Dict[str, Any]] = {}
    plugins: Dict[str, EdgePlugin] = {}
    entrypoints: Dict[str, EdgeEntryPoint] = {}
    providers: Dict[str, Dict[str, Any]] = {}
    api: Optional[EdgeAPI] = None
    log: Optional[EdgeLog] = None
    access_log: Optional[EdgeAccessLog] = Field(None, alias="accessLog")
    metrics: Optional[EdgeMetrics] = None


# --- Root ------------------------------------------------------------------

class Stack(StackModel):
    """
    The complete declarative description of a deployment.
    """
    version: int = 1
    project: str = ""
    domain: str = ""
    environment: str = ""
    tls: TLSPolicy = Field(default_factory=TLSPolicy)
    edge: Optional[EdgeConfig] = Field(None, alias="traefik")
    observability: Observability = Field(default_factory=Observability)
    networks: Dict[str, Network] = {}
    volumes: List[Volume] = []
    services: List[Service] = []

    @field_validator("networks", mode="before")
    @classmethod
    def _networks_allow_empty(cls, value):
        # `private: {}` and a bare `private:` both mean a default network
        if isinstance(value, dict):
            return {name: spec or {} for name, spec in value.items()}
        return value

    def get_service(self, name: str) -> Optional[Service]:
        for service in self.services:
            if service.name == name:
                return service
        return None
