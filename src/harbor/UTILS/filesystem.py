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
File system access used at the edges of the engine: reading stack files and
writing generated manifests.
"""
import os
import tempfile


class FileSystem:
    """
    Thin wrapper over the local file system. Writes are atomic: the target is
    either left untouched or fully replaced.
    """

    def read_bytes(self, path: str) -> bytes:
        """
        Reads a whole file.

        :param path: File to read.
        :return: Its content.
        """
        with open(path, "rb") as f:
            return f.read()

    def exists(self, path: str) -> bool:
        return os.path.exists(path)

    def write_file(self, path: str, data: bytes, mode: int = 0o644):
        """
        Writes `data` to `path` through a temporary file in the same directory.

        :param path: Destination file; parent directories are created.
        :param data: Content to write.
        :param mode: Permission bits of the final file.
        """
        directory = os.path.dirname(os.path.abspath(path))
        os.makedirs(directory, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".harbor-", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.chmod(tmp_path, mode)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
