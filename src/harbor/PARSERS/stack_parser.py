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
Parser for stack files (`stack.yml`).
"""
from typing import Optional

import yaml
from pydantic import ValidationError

from ..errors import StackLoadError
from ..MODELS.stack import Stack
from ..UTILS.filesystem import FileSystem
from ..UTILS.logger import get_logger

logger = get_logger(__name__)


def _describe(error: ValidationError) -> str:
    problems = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"])
        problems.append(f"{location}: {item['msg']}" if location else item["msg"])
    return "; ".join(problems)


class StackParser:
    """
    Loads a stack file into an immutable `Stack`.

    The document is taken literally: no environment interpolation is performed.
    """

    def __init__(self, filesystem: Optional[FileSystem] = None):
        """
        :param filesystem: Collaborator used to read files.
        """
        self.filesystem = filesystem or FileSystem()

    def load(self, path: str) -> Stack:
        """
        Reads and parses a stack file.

        :param path: Path to the stack file.
        :return: The parsed stack.
        :raises StackLoadError: If the file cannot be read or does not match the schema.
        """
        try:
            content = self.filesystem.read_bytes(path)
        except OSError as e:
            raise StackLoadError(f"cannot read stack file: {e.strerror or e}", path=path) from e

        logger.debug(f"Loaded {len(content)} bytes from {path}")
        try:
            text = content.decode("utf-8")
        except UnicodeDecodeError as e:
            raise StackLoadError("stack file is not valid UTF-8", path=path) from e
        return self.parse_from_string(text, path=path)

    def parse_from_string(self, content: str, path: Optional[str] = None) -> Stack:
        """
        Parses a stack from YAML text.

        :param content: YAML content of the stack file.
        :param path: Origin of the content, used in error messages.
        :return: The parsed stack.
        """
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise StackLoadError(f"invalid YAML: {e}", path=path) from e

        if not data:
            raise StackLoadError("stack file is empty", path=path)
        if not isinstance(data, dict):
            raise StackLoadError("stack file must contain a mapping at the top level", path=path)

        try:
            return Stack.model_validate(data)
        except ValidationError as e:
            raise StackLoadError(f"invalid stack: {_describe(e)}", path=path) from e
