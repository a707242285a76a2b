"""
Builders for the `networks:` and `volumes:` sections of the manifest.
"""
from typing import Dict, Iterable, Mapping

from ..MODELS.manifest import ComposeNetwork, ComposeVolume
from ..MODELS.stack import Network, Volume

# Network every routed container shares with the edge proxy.
EDGE_NETWORK = "traefik"

_INTERNAL_DRIVER_OPTS = {
    "com.docker.network.bridge.enable_ip_masquerade": "false",
    "com.docker.network.bridge.enable_icc": "true",
    "com.docker.network.bridge.host_binding_ipv4": "127.0.0.1",
}

_PUBLIC_DRIVER_OPTS = {
    "com.docker.network.bridge.enable_ip_masquerade": "true",
    "com.docker.network.bridge.enable_icc": "true",
}


class NetworkBuilder:
    """
    Turns named network declarations into bridge networks. Internal networks
    have IP masquerading disabled, so containers on them cannot reach the internet.
    """

    def build(self, networks: Mapping[str, Network]) -> Dict[str, ComposeNetwork]:
        """
        :param networks: Declared networks keyed by name.
        :return: Compose networks keyed by name, in sorted order.
        """
        result = {}
        for name in sorted(networks):
            result[name] = self.build_network(networks[name])
        return result

    def build_network(self, network: Network) -> ComposeNetwork:
        if network.internal:
            return ComposeNetwork(internal=True, driver_opts=dict(_INTERNAL_DRIVER_OPTS))
        return ComposeNetwork(driver_opts=dict(_PUBLIC_DRIVER_OPTS))

    def edge_network(self) -> ComposeNetwork:
        """The plain bridge injected when the stack does not declare `traefik` itself."""
        return ComposeNetwork()


class VolumeBuilder:
    """
    Turns volume declarations into empty named-volume entries.
    """

    def build(self, volumes: Iterable[Volume]) -> Dict[str, ComposeVolume]:
        return {volume.name: ComposeVolume() for volume in volumes}
