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
Converter summarizing the routes a stack exposes through the edge proxy.
"""
import re
from typing import List, Optional

from jinja2 import Template
from pydantic import BaseModel

from ..BUILDERS.environment import resolve_environment
from ..BUILDERS.generator import ComposeGenerator
from ..MODELS.manifest import GenerateOptions
from ..MODELS.stack import Stack

ROUTE_TEMPLATE = """\
{{ "%-16s"|format("SERVICE") }} {{ "%-40s"|format("URL") }} MIDDLEWARES
{%- for route in routes %}
{{ "%-16s"|format(route.service) }} {{ "%-40s"|format(route.url) }} {{ route.middlewares | join(",") or "-" }}
{%- else %}
(no routed services)
{%- endfor %}
"""

_HOST_RULE = re.compile(r"Host\(`([^`]+)`\)")


class Route(BaseModel):
    service: str
    rule: str
    url: str
    middlewares: List[str] = []


class RouteTableConverter:
    """
    Lists every router of the generated manifest: declared services, the log
    viewer and the monitoring hub.
    """

    def __init__(self, stack: Stack, options: Optional[GenerateOptions] = None,
                 generator: Optional[ComposeGenerator] = None):
        self.stack = stack
        self.options = options or GenerateOptions()
        self.generator = generator or ComposeGenerator()
        self.template = Template(ROUTE_TEMPLATE)

    def routes(self) -> List[Route]:
        """
        :return: One route per routed service, sorted by service name.
        """
        scheme = "https" if resolve_environment(self.stack).is_production else "http"
        manifest = self.generator.build_manifest(self.stack, self.options)

        routes = []
        for name in sorted(manifest.services):
            labels = manifest.services[name].labels or {}
            rule = labels.get(f"traefik.http.routers.{name}.rule")
            if not rule:
                continue
            match = _HOST_RULE.search(rule)
            url = f"{scheme}://{match.group(1)}" if match else rule
            middlewares = labels.get(f"traefik.http.routers.{name}.middlewares", "")
            routes.append(Route(
                service=name,
                rule=rule,
                url=url,
                middlewares=[m for m in middlewares.split(",") if m],
            ))
        return routes

    def render(self) -> str:
        return self.template.render(routes=self.routes())
