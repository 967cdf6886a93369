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

"""Receiver for the output of 'pm install' and 'pm uninstall'.

The package manager reports the outcome as text, e.g.:
  Success
  Failure [INSTALL_FAILED_INSUFFICIENT_STORAGE]
  Failure [INSTALL_FAILED_OLDER_SDK: Requires newer sdk version #30]
  Error: Unable to open file: /data/local/tmp/app.apk

The outcome only counts as a success if "Success" is reported. Any other
output, or no output at all, is a failure.
"""
import re
from typing import List

from apk_manager.interfaces import shell_output_receiver_base

UNKNOWN_ERROR = "Unknown Error"

_SUCCESS_OUTPUT = "Success"
_FAILURE_REGEX = re.compile(r"^Failure(?:\s+\[(.*?)\])?")
_ERROR_REGEX = re.compile(r"^(?:Error|adb: failed to \w+)(?::|\s)\s*(.*)")


class InstallReceiver(shell_output_receiver_base.ShellOutputReceiverBase):
  """Captures the outcome of a package install or uninstall."""

  def __init__(self):
    super().__init__()
    self._success = False
    self._error_message = ""

  @property
  def success(self) -> bool:
    """Whether the device reported success."""
    return self._success

  @property
  def error_message(self) -> str:
    """Failure text reported by the device. Empty after a success."""
    return self._error_message

  def process_new_lines(self, lines: List[str]) -> None:
    for line in lines:
      line = line.strip()
      if not line:
        continue
      if line.startswith(_SUCCESS_OUTPUT):
        self._success = True
        self._error_message = ""
        continue
      failure_match = _FAILURE_REGEX.match(line)
      if failure_match:
        self._success = False
        self._error_message = failure_match.group(1) or UNKNOWN_ERROR
        continue
      error_match = _ERROR_REGEX.match(line)
      if error_match:
        self._success = False
        self._error_message = error_match.group(1) or UNKNOWN_ERROR
        continue
      if not self._success and not self._error_message:
        self._error_message = UNKNOWN_ERROR

  def done(self) -> None:
    if not self._success and not self._error_message:
      self._error_message = UNKNOWN_ERROR
