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
Exceptions raised by Harbor.
"""
from typing import List, Optional


class HarborError(Exception):
    """Base class for every error raised by the package."""


class StackLoadError(HarborError):
    """The stack file could not be read, parsed or mapped onto the schema."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        if path:
            message = f"{path}: {message}"
        super().__init__(message)


class StackValidationError(HarborError):
    """
    The stack parsed but is semantically invalid.

    All problems found are kept in ``errors`` so they can be reported together.
    """

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        lines = "\n".join(f" - {e}" for e in self.errors)
        super().__init__(f"invalid configuration:\n{lines}")


class GenerationError(HarborError):
    """
    A builder failed while producing the manifest.

    :param message: What went wrong.
    :param service: Name of the offending service, when known.
    :param field: Name of the offending field, when known.
    """

    def __init__(self, message: str, service: Optional[str] = None, field: Optional[str] = None):
        self.service = service
        self.field = field
        location = ".".join(p for p in (service, field) if p)
        if location:
            message = f"{location}: {message}"
        super().__init__(message)


class MarshalError(GenerationError):
    """The manifest could not be serialized."""
