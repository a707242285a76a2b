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
Serialization of the manifest to YAML.
"""
import yaml

from ..errors import MarshalError
from ..MODELS.manifest import Manifest


class YamlMarshaler:
    """
    Dumps a manifest as block-style YAML with sorted keys, so the same manifest
    always yields the same bytes.
    """

    def marshal(self, manifest: Manifest) -> bytes:
        """
        :param manifest: The manifest to serialize.
        :return: UTF-8 encoded YAML.
        :raises MarshalError: If a value cannot be represented.
        """
        try:
            text = yaml.safe_dump(
                manifest.to_dict(),
                sort_keys=True,
                default_flow_style=False,
                allow_unicode=True,
            )
        except yaml.YAMLError as e:
            raise MarshalError(f"failed to serialize manifest: {e}") from e
        return text.encode("utf-8")
