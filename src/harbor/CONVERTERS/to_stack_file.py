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
Converter producing a starter stack file for a new project.
"""
from typing import Optional

from jinja2 import Template
from pydantic import BaseModel

from ..BUILDERS.environment import Environment, environment_from_domain, environment_from_name
from ..errors import StackValidationError
from ..UTILS.filesystem import FileSystem
from ..UTILS.logger import get_logger

logger = get_logger(__name__)

STACK_TEMPLATE = """\
version: 1
project: {{ project | tojson }}
domain: {{ domain | tojson }}
environment: {{ environment }}

tls:
  mode: {{ tls_mode }}
{%- if email %}
  email: {{ email | tojson }}
{%- endif %}
  resolver: le

observability:
  dozzle:
    enabled: {{ 'true' if log_viewer else 'false' }}
    subdomain: logs
    data_volume: dozzle_data
{%- if log_viewer and log_viewer_username %}
    basic_auth:
      enabled: true
      username: {{ log_viewer_username | tojson }}
      password: {{ log_viewer_password | tojson }}
{%- endif %}
  beszel:
    enabled: {{ 'true' if monitoring else 'false' }}
    subdomain: monitor
    data_volume: beszel_data
    socket_volume: beszel_socket

networks:
  private:
    internal: true
  public: {}
  traefik: {}

{%- if volumes %}
volumes:
{%- for volume in volumes %}
  - name: {{ volume }}
{%- endfor %}
{%- else %}
volumes: []
{%- endif %}

# Declare your services here, for example:
#
#   - name: web
#     subdomain: app
#     image: nginx:alpine
#     expose: 80
#     traefik: true
services: []
"""


class InitOptions(BaseModel):
    """
    Answers used to scaffold a stack file. The log viewer password must
    already be hashed (htpasswd format).
    """
    domain: str = ""
    project: str
    email: str = ""
    environment: Optional[str] = None
    log_viewer: bool = True
    monitoring: bool = True
    log_viewer_username: str = ""
    log_viewer_password: str = ""


class StackFileConverter:
    """
    Renders a `stack.yml` for a new project.
    """

    def __init__(self, options: InitOptions):
        self.options = options
        self.template = Template(STACK_TEMPLATE)

    def resolve_environment(self) -> Environment:
        explicit = environment_from_name(self.options.environment or "")
        return explicit or environment_from_domain(self.options.domain)

    def render(self) -> str:
        """
        :return: The stack file content.
        :raises StackValidationError: If the answers cannot produce a valid stack.
        """
        options = self.options
        env = self.resolve_environment()
        domain = options.domain or ("localhost" if env.is_local else "")

        errors = []
        if not options.project:
            errors.append("project: required")
        if env.is_production and not domain:
            errors.append("domain: required for production")
        if env.is_production and not options.email:
            errors.append("email: required for production (ACME registration)")
        if options.log_viewer_username and not options.log_viewer_password:
            errors.append("log viewer password hash: required with a username")
        if errors:
            raise StackValidationError(errors)

        volumes = []
        if env.is_production:
            volumes.append("traefik_acme")
        if options.log_viewer:
            volumes.append("dozzle_data")
        if options.monitoring:
            volumes += ["beszel_data", "beszel_socket"]

        return self.template.render(
            project=options.project,
            domain=domain,
            environment=env.value,
            tls_mode="acme" if env.is_production else "disabled",
            email=options.email,
            log_viewer=options.log_viewer,
            log_viewer_username=options.log_viewer_username,
            log_viewer_password=options.log_viewer_password,
            monitoring=options.monitoring,
            volumes=volumes,
        )

    def convert(self, path: str = "stack.yml", filesystem: Optional[FileSystem] = None,
                force: bool = False) -> str:
        """
        Writes the stack file.

        :param path: Destination of the stack file.
        :param filesystem: Collaborator used to write it.
        :param force: Overwrite an existing file.
        :return: The path written.
        :raises FileExistsError: If the file exists and `force` is not set.
        """
        filesystem = filesystem or FileSystem()
        if filesystem.exists(path) and not force:
            raise FileExistsError(f"{path} already exists")

        filesystem.write_file(path, self.render().encode("utf-8"))
        logger.debug(f"Wrote stack scaffold to {path}")
        return path
