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

"""Command channel which drives the adb executable.

The adb server protocol is not spoken directly: every command is a separate
'adb -s <serial> ...' process.
"""
import json
import os
import re
import subprocess
import time
from typing import List, Optional, Sequence, Tuple, Union

from apk_manager import apkm_logger
from apk_manager import config
from apk_manager import data_types
from apk_manager import errors
from apk_manager.interfaces import command_channel_base
from apk_manager.interfaces import shell_output_receiver_base

logger = apkm_logger.get_logger("adb")

# Output of adb itself (not of the shell command) when the transport fails.
_ADB_FAILURE_MESSAGES = ("error: closed", "adb: device offline",
                         "error: no devices/emulators found")
_ADB_DEVICE_NOT_FOUND_REGEX = re.compile(r"error: device '.*' not found")
_DEVICES_OUTPUT_START_MARKER = "List of devices attached"
_DEVICE_PROPERTY_REGEX = re.compile(r"(\w+):(\S+)")

Command = Union[str, Sequence[str]]


def get_adb_path(adb_path: Optional[str] = None) -> str:
  """Returns the correct adb path to use.

  Starts with passed in path, then looks at config, and finally system's
  default adb if available.

  Args:
    adb_path: Path to "adb" executable.

  Raises:
    ChannelError: if no valid adb path could be found.

  Returns:
    Path to correct adb executable to use.
  """
  if is_valid_path(adb_path):
    return adb_path
  try:
    with open(config.DEFAULT_CONFIG_FILE) as config_file:
      apkm_config = json.load(config_file)
    adb_path = apkm_config[config.ADB_BIN_PATH_CONFIG]
  except (IOError, KeyError, ValueError):
    pass

  if is_valid_path(adb_path):
    return adb_path
  elif adb_path:
    logger.warning(f"adb path {adb_path!r} stored in "
                   f"{config.DEFAULT_CONFIG_FILE} does not exist.")

  command_path = _get_command_path("adb")
  if command_path:
    return command_path
  raise errors.ChannelError("No valid adb path found using 'which adb'")


def is_valid_path(path: Optional[str]) -> bool:
  return bool(path) and os.path.exists(path)


def _get_command_path(command_name: str) -> str:
  """Returns the full path for the given command name or "" if not found."""
  try:
    result = subprocess.check_output(["which", command_name],
                                     stderr=subprocess.STDOUT).rstrip()
    return result.decode("utf-8", "replace")
  except subprocess.CalledProcessError:
    return ""


def _is_adb_failure(output: str) -> bool:
  """Returns whether adb output reports a broken transport."""
  if any(msg in output for msg in _ADB_FAILURE_MESSAGES):
    return True
  return bool(_ADB_DEVICE_NOT_FOUND_REGEX.search(output))


def adb_command(command: Command,
                adb_serial: Optional[str] = None,
                adb_path: Optional[str] = None,
                timeout: Optional[float] = config.DEFAULT_ADB_TIMEOUT
                ) -> Tuple[str, int]:
  """Runs an adb command and returns its output and return code.

  Args:
    command: ADB command and optionally arguments to execute.
    adb_serial: Device serial number.
    adb_path: Optional alternative path to adb executable.
    timeout: Time in seconds to wait for adb process to complete.

  Raises:
    ChannelError: if the adb executable could not be found or started.
    CommunicationTimeoutError: if the adb process did not complete in time.

  Returns:
    The command output (including stderr) and the return code.
  """
  adb_path = get_adb_path(adb_path)

  if adb_serial is None:
    args = [adb_path]
  else:
    args = [adb_path, "-s", adb_serial]
  if isinstance(command, str):
    args.append(command)
  else:
    args.extend(command)

  try:
    proc = subprocess.Popen(
        args, stdout=subprocess.PIPE, stderr=subprocess.STDOUT)
  except OSError as err:
    raise errors.ChannelError(
        f"Unable to start adb command {command!r}: {err!r}") from err
  try:
    output, _ = proc.communicate(timeout=timeout)
  except subprocess.TimeoutExpired as err:
    proc.terminate()
    proc.communicate()
    raise errors.CommunicationTimeoutError(
        f"adb command {command!r} to {adb_serial} did not complete in "
        f"{timeout} seconds") from err
  output = output.decode("utf-8", "replace")
  logger.debug(f"adb command {command!r} to {adb_serial} returned {output!r}")
  return output, proc.returncode


def adb_devices(
    adb_path: Optional[str] = None,
    state: Optional[data_types.DeviceState] = None
) -> List[data_types.DeviceData]:
  """Returns parsed output of 'adb devices -l'.

  Args:
    adb_path: Optional alternative path to the 'adb' executable.
    state: If provided, only include devices in the given state.

  Returns:
    Devices found in 'adb devices -l'.
  """
  try:
    output, _ = adb_command(["devices", "-l"], adb_path=adb_path)
  except errors.ChannelError as err:
    logger.warning(repr(err))
    return []

  output_lines = output.splitlines()
  if _DEVICES_OUTPUT_START_MARKER not in output_lines:
    return []

  output_start_index = output_lines.index(_DEVICES_OUTPUT_START_MARKER) + 1
  devices = []
  for device_line in output_lines[output_start_index:]:
    if not device_line.strip():
      continue
    device = _parse_device_line(device_line)
    if state is None or state == device.state:
      devices.append(device)
  return devices


def _parse_device_line(device_line: str) -> data_types.DeviceData:
  """Parses a single line of 'adb devices -l' output."""
  serial, _, rest = device_line.strip().partition(" ")
  if "\t" in serial:  # 'adb devices' without -l separates with a tab.
    serial, _, rest = device_line.strip().partition("\t")
  rest = rest.strip()
  if rest.startswith(data_types.DeviceState.NO_PERMISSIONS.value):
    # Reasons and URLs vary: "no permissions (<reason>); see [<url>]".
    return data_types.DeviceData(
        serial=serial, state=data_types.DeviceState.NO_PERMISSIONS)

  properties = dict(_DEVICE_PROPERTY_REGEX.findall(rest))
  state_str = _DEVICE_PROPERTY_REGEX.sub("", rest).strip()
  try:
    device_state = data_types.DeviceState(state_str)
  except ValueError as e:
    logger.debug(f"Failed to parse ADB state {state_str!r}. Error: {e!r}")
    device_state = data_types.DeviceState.UNRECOGNIZED
  transport_id = properties.get("transport_id")
  return data_types.DeviceData(
      serial=serial,
      state=device_state,
      product=properties.get("product", ""),
      model=properties.get("model", ""),
      device=properties.get("device", ""),
      transport_id=int(transport_id) if transport_id else None)


def get_device(serial: str,
               adb_path: Optional[str] = None) -> data_types.DeviceData:
  """Returns the device with the given serial as seen by 'adb devices -l'.

  Args:
    serial: ADB identifier of the device.
    adb_path: Optional alternative path to the 'adb' executable.

  Returns:
    The device. Its state is OFFLINE if adb does not list it at all.
  """
  for device in adb_devices(adb_path=adb_path):
    if device.serial == serial:
      return device
  return data_types.DeviceData(
      serial=serial, state=data_types.DeviceState.OFFLINE)


class AdbClient(command_channel_base.CommandChannelBase):
  """Executes shell commands through 'adb shell'."""

  def __init__(self,
               adb_path: Optional[str] = None,
               timeout: Optional[float] = config.DEFAULT_ADB_TIMEOUT,
               retries: int = 1):
    """Initializes the adb command channel.

    Args:
      adb_path: Optional alternative path to adb executable.
      timeout: Time in seconds to wait for each command to complete.
      retries: Number of attempts when adb reports a broken transport.
    """
    self._adb_path = adb_path
    self._timeout = timeout
    self._retries = retries

  @property
  def adb_path(self) -> Optional[str]:
    return self._adb_path

  def execute_shell_command(
      self,
      device: data_types.DeviceData,
      command: str,
      receiver: Optional[shell_output_receiver_base.ShellOutputReceiverBase]
      = None) -> None:
    """Runs the command with 'adb shell' and feeds its output to receiver."""
    output = self._shell(device.serial, command)
    if receiver is None or receiver.is_cancelled:
      return
    receiver.add_output(output)
    receiver.flush()

  def run(self, device: data_types.DeviceData, command: Command) -> str:
    """Runs a non-shell adb command (e.g. "push") against the device.

    Args:
      device: Device to run the command against.
      command: ADB command and its arguments.

    Raises:
      DeviceIOError: if adb exited with a non-zero return code.

    Returns:
      The command output.
    """
    output, return_code = adb_command(
        command, adb_serial=device.serial, adb_path=self._adb_path,
        timeout=self._timeout)
    if return_code != 0:
      raise errors.DeviceIOError(
          f"adb command {command!r} on device {device.serial} failed with "
          f"return code {return_code}. Output: {output!r}")
    return output

  def _shell(self, adb_serial: str, command: str) -> str:
    """Returns the output of the shell command, retrying transport failures."""
    output = ""
    for attempt in range(self._retries):
      output, _ = adb_command(
          ["shell", command], adb_serial=adb_serial,
          adb_path=self._adb_path, timeout=self._timeout)
      if not _is_adb_failure(output):
        return output
      if attempt < self._retries - 1:
        logger.info(
            f"Retrying adb command: {command} in {config.ADB_RETRY_SLEEP}s")
        time.sleep(config.ADB_RETRY_SLEEP)
    raise errors.ChannelError(
        f"ADB command failed on device {adb_serial}: {command} with output: "
        f"{output}")
