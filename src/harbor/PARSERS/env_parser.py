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
Parser for runtime `.env` files.
"""
import io
from typing import Dict

from dotenv import dotenv_values


class EnvParser:
    """
    Parses `.env` files with python-dotenv. Keys declared without a value are
    dropped.
    """

    @staticmethod
    def parse(env_path: str) -> Dict[str, str]:
        """
        Parses an .env file from a path.

        :param env_path: Path to the .env file.
        :return: Dictionary of environment variables.
        """
        return EnvParser._clean(dotenv_values(env_path))

    @staticmethod
    def parse_from_string(content: str) -> Dict[str, str]:
        """
        Parses environment variables from a string. Quotes, comments and
        `export` prefixes are handled by dotenv.
        """
        return EnvParser._clean(dotenv_values(stream=io.StringIO(content)))

    @staticmethod
    def _clean(values) -> Dict[str, str]:
        return {key: value for key, value in values.items() if value is not None}
