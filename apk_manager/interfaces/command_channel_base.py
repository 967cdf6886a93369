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

"""Command channel interface."""
import abc
from typing import Optional

from apk_manager import data_types
from apk_manager.interfaces import shell_output_receiver_base


class CommandChannelBase(abc.ABC):
  """Abstract base class for executing shell commands on a device."""

  @abc.abstractmethod
  def execute_shell_command(
      self,
      device: data_types.DeviceData,
      command: str,
      receiver: Optional[shell_output_receiver_base.ShellOutputReceiverBase]
      = None) -> None:
    """Executes a shell command on the device.

    The command text is sent as is. Its output is streamed into the receiver
    (add_output() for each chunk, then flush()). The output is discarded if
    no receiver is given.

    Args:
      device: The device to run the command on.
      command: The shell command.
      receiver: Parser of the command output.

    Raises:
      ChannelError: if the command could not be delivered to the device or the
        connection was lost while reading the output.
    """
