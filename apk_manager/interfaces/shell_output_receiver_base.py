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

"""Shell output receiver interface.

A receiver is handed to a command channel together with a shell command. The
channel streams the raw command output into the receiver with add_output() and
calls flush() once the command has completed. Each receiver turns the output
lines into a typed result which the caller reads after the channel returns.
"""
import abc
from typing import List


class ShellOutputReceiverBase(abc.ABC):
  """Abstract base class for line-oriented shell output parsers."""

  def __init__(self):
    self._pending = ""

  @property
  def is_cancelled(self) -> bool:
    """Whether the channel should stop streaming output to this receiver."""
    return False

  def add_output(self, data: str) -> None:
    """Adds a chunk of command output.

    Complete lines are processed right away. A trailing partial line is kept
    until more output arrives or flush() is called.

    Args:
      data: Raw text produced by the command.
    """
    if not data:
      return
    text = self._pending + data
    lines = text.split("\n")
    self._pending = lines.pop()
    lines = [line.rstrip("\r") for line in lines]
    if lines:
      self.process_new_lines(lines)

  def flush(self) -> None:
    """Processes any remaining partial line and finalizes the result."""
    if self._pending:
      pending = self._pending.rstrip("\r")
      self._pending = ""
      self.process_new_lines([pending])
    self.done()

  def done(self) -> None:
    """Called once all output has been received."""

  @abc.abstractmethod
  def process_new_lines(self, lines: List[str]) -> None:
    """Processes new lines of output.

    Args:
      lines: Complete lines, without line terminators.
    """

