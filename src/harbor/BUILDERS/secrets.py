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
Collection of the manifest-wide `secrets:` section.
"""
from typing import Dict, Iterable

from ..MODELS.manifest import ComposeSecret
from ..MODELS.stack import Secret, Service
from ..UTILS.logger import get_logger

logger = get_logger(__name__)


def compose_secret(secret: Secret) -> ComposeSecret:
    if secret.external:
        return ComposeSecret(external=True)
    return ComposeSecret(file=secret.file)


class SecretCollector:
    """
    Walks every service's secrets once and keeps one entry per secret name.

    When two services declare the same name with different sources, the first
    declaration wins and the conflict is logged.
    """

    def collect(self, services: Iterable[Service]) -> Dict[str, ComposeSecret]:
        """
        :param services: Services in declaration order.
        :return: Manifest secrets keyed by name.
        """
        secrets: Dict[str, ComposeSecret] = {}
        owners: Dict[str, str] = {}

        for service in services:
            for secret in service.secrets:
                entry = compose_secret(secret)
                if secret.name not in secrets:
                    secrets[secret.name] = entry
                    owners[secret.name] = service.name
                elif secrets[secret.name] != entry:
                    logger.warning(
                        f"Secret {secret.name} declared differently by {service.name}; "
                        f"keeping the definition from {owners[secret.name]}"
                    )
        return secrets
