# Copyright 2022 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#      http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Receiver for the output of 'pm list packages -f'.

Sample output:
  package:/data/app/com.example.app-1/base.apk=com.example.app
  package:/system/priv-app/Shell/Shell.apk=com.android.shell
"""
from typing import Dict, List

from apk_manager import apkm_logger
from apk_manager.interfaces import shell_output_receiver_base

logger = apkm_logger.get_logger("receivers")

_PACKAGE_PREFIX = "package:"
_PATH_SEPARATOR = "="


class PackageListReceiver(shell_output_receiver_base.ShellOutputReceiverBase):
  """Collects {package name: package path} pairs from a package listing."""

  def __init__(self):
    super().__init__()
    self._packages = {}

  @property
  def packages(self) -> Dict[str, str]:
    """Package names mapped to their install paths."""
    return dict(self._packages)

  def process_new_lines(self, lines: List[str]) -> None:
    for line in lines:
      if not line.startswith(_PACKAGE_PREFIX):
        continue
      # Paths may contain "=", package names never do.
      path, separator, name = line[len(_PACKAGE_PREFIX):].rpartition(
          _PATH_SEPARATOR)
      name = name.strip()
      if not separator or not name:
        logger.debug(f"Skipping package listing line without a path: {line!r}")
        continue
      self._packages[name] = path.strip()
