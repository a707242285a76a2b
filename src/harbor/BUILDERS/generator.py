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
Orchestration of a generation run: stack in, compose manifest out.
"""
from typing import Optional

from ..errors import GenerationError, HarborError
from ..MODELS.manifest import ComposeService, ComposeVolume, GenerateOptions, Manifest
from ..MODELS.stack import Stack
from ..UTILS.logger import get_logger
from .edge_builder import ACME_VOLUME, EDGE_SERVICE, EdgeBuilder
from .environment import Environment, resolve_environment
from .marshaler import YamlMarshaler
from .network_volume import EDGE_NETWORK, NetworkBuilder, VolumeBuilder
from .observability_builder import HUB_SERVICE, LOG_VIEWER_SERVICE, ObservabilityBuilder
from .secrets import SecretCollector
from .service_builder import ServiceBuilder

logger = get_logger(__name__)


class ComposeGenerator:
    """
    Runs the builders in a fixed order: networks, volumes, services, edge
    proxy, observability, secrets. The result only depends on the stack and
    the options.
    """

    def __init__(self, network_builder: Optional[NetworkBuilder] = None,
                 volume_builder: Optional[VolumeBuilder] = None,
                 service_builder: Optional[ServiceBuilder] = None,
                 edge_builder: Optional[EdgeBuilder] = None,
                 observability_builder: Optional[ObservabilityBuilder] = None,
                 secret_collector: Optional[SecretCollector] = None,
                 marshaler: Optional[YamlMarshaler] = None):
        self.network_builder = network_builder or NetworkBuilder()
        self.volume_builder = volume_builder or VolumeBuilder()
        self.service_builder = service_builder or ServiceBuilder()
        self.edge_builder = edge_builder or EdgeBuilder()
        self.observability_builder = observability_builder or ObservabilityBuilder()
        self.secret_collector = secret_collector or SecretCollector()
        self.marshaler = marshaler or YamlMarshaler()

    def generate(self, stack: Stack, options: Optional[GenerateOptions] = None) -> bytes:
        """
        Generates the manifest and serializes it.

        :param stack: A validated stack.
        :param options: Generation options.
        :return: The manifest as YAML bytes.
        :raises GenerationError: If a builder or the marshaler fails.
        """
        return self.marshaler.marshal(self.build_manifest(stack, options))

    def build_manifest(self, stack: Stack, options: Optional[GenerateOptions] = None) -> Manifest:
        """
        Builds the typed manifest without serializing it.
        """
        options = options or GenerateOptions()
        env = resolve_environment(stack)
        logger.debug(f"Generating {stack.project or '<unnamed>'} for {env.value} ({len(stack.services)} services)")

        manifest = Manifest()

        manifest.networks = self.network_builder.build(stack.networks)
        if EDGE_NETWORK not in manifest.networks:
            manifest.networks[EDGE_NETWORK] = self.network_builder.edge_network()

        manifest.volumes = self.volume_builder.build(stack.volumes)

        for service in stack.services:
            try:
                manifest.services[service.name] = self.service_builder.build(service, stack, env)
            except HarborError:
                raise
            except (ValueError, TypeError, KeyError) as e:
                raise GenerationError(str(e), service=service.name) from e

        try:
            edge = self.edge_builder.build(stack, env)
        except (ValueError, TypeError, KeyError) as e:
            raise GenerationError(str(e), service=EDGE_SERVICE, field="traefik") from e
        self._add_builtin(manifest, EDGE_SERVICE, edge)
        # The resolver may come from custom commands that bring their own storage
        if any(mount.startswith(f"{ACME_VOLUME}:") for mount in edge.volumes or ()):
            self._ensure_volume(manifest, ACME_VOLUME)

        if not (options.disable_log_viewer and options.disable_monitoring):
            self._add_observability(manifest, stack, env, options)

        manifest.secrets = self.secret_collector.collect(stack.services)
        return manifest

    def _add_observability(self, manifest: Manifest, stack: Stack, env: Environment, options: GenerateOptions):
        services = self.observability_builder.build(stack, env, options)
        for name, entry in services.items():
            self._add_builtin(manifest, name, entry)

        observability = stack.observability
        if LOG_VIEWER_SERVICE in services:
            self._ensure_volume(manifest, observability.log_viewer.data_volume)
        if HUB_SERVICE in services:
            self._ensure_volume(manifest, observability.monitoring.data_volume)
            self._ensure_volume(manifest, observability.monitoring.socket_volume)

    @staticmethod
    def _add_builtin(manifest: Manifest, name: str, entry: ComposeService):
        if name in manifest.services:
            raise GenerationError(f"declared service collides with the built-in {name} service",
                                  service=name, field="name")
        manifest.services[name] = entry

    @staticmethod
    def _ensure_volume(manifest: Manifest, name: str):
        if name and name not in manifest.volumes:
            manifest.volumes[name] = ComposeVolume()
