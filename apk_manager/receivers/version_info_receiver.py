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

"""Receiver for the output of 'dumpsys package <package_name>'.

Sample package system info for a package:
  Packages:
    Package [com.my.package] (abcd1234):
      userId=1000
      pkg=Package{abcd1234 com.my.package}
      versionCode=1234 minSdk=30 targetSdk=31
      versionName=12.34.56
  Hidden system packages:
    Package [com.my.package] (efgh5678):
      versionCode=1000 minSdk=30 targetSdk=31
      versionName=12.00.00
"""
import re
from typing import List, Optional

from apk_manager import data_types
from apk_manager.interfaces import shell_output_receiver_base

_VERSION_CODE_REGEX = re.compile(r"versionCode=(\d+)")
_VERSION_NAME_REGEX = re.compile(r"versionName=(.+)")


class VersionInfoReceiver(shell_output_receiver_base.ShellOutputReceiverBase):
  """Extracts the version of the installed package.

  Only the first versionCode and versionName are kept so the hidden system
  package (listed after the installed one) doesn't overwrite them.
  """

  def __init__(self):
    super().__init__()
    self._version_code: Optional[int] = None
    self._version_name: Optional[str] = None

  @property
  def version_info(self) -> data_types.VersionInfo:
    """Version info of the package. Defaults if the package wasn't found."""
    return data_types.VersionInfo(
        version_code=self._version_code or 0,
        version_name=self._version_name or "")

  def process_new_lines(self, lines: List[str]) -> None:
    for line in lines:
      if self._version_code is None:
        code_match = _VERSION_CODE_REGEX.search(line)
        if code_match:
          self._version_code = int(code_match.group(1))
      if self._version_name is None:
        name_match = _VERSION_NAME_REGEX.search(line)
        if name_match:
          self._version_name = name_match.group(1).strip()
