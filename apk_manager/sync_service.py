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

"""adb flavor of the sync (file transfer) service.

The stream is spooled to a temporary file on the host which is then sent with
'adb push'. Mode bits and modification time are applied afterwards with
'chmod' and 'touch' on the device.
"""
import datetime
import functools
import os
import tempfile
import threading
from typing import BinaryIO, List, Optional

from apk_manager import adb_client as adb_client_lib
from apk_manager import apkm_logger
from apk_manager import config
from apk_manager import data_types
from apk_manager import errors
from apk_manager.interfaces import shell_output_receiver_base
from apk_manager.interfaces import sync_service_base

logger = apkm_logger.get_logger("sync")

_COMMAND_CHMOD = "chmod {permissions:o} {remote_path}"
_COMMAND_TOUCH = "touch -m -d @{epoch} {remote_path}"


def _get_stream_size(stream: BinaryIO) -> Optional[int]:
  """Returns the size of a file-backed stream, or None if it is unknown."""
  try:
    return os.fstat(stream.fileno()).st_size
  except (AttributeError, OSError):
    return None


class _OutputLinesReceiver(shell_output_receiver_base.ShellOutputReceiverBase):
  """Keeps the non-empty output lines of a command."""

  def __init__(self):
    super().__init__()
    self.lines: List[str] = []

  def process_new_lines(self, lines: List[str]) -> None:
    self.lines.extend(line for line in lines if line.strip())


class AdbSyncService(sync_service_base.SyncServiceBase):
  """Transfers files to a device with 'adb push'."""

  def __init__(self,
               device: data_types.DeviceData,
               adb_client: adb_client_lib.AdbClient):
    """Opens a file transfer session.

    Args:
      device: Device to transfer files to.
      adb_client: Client used to run adb commands against the device.
    """
    super().__init__(device)
    self._adb_client = adb_client
    self._spool_paths: List[str] = []
    self._closed = False

  @property
  def closed(self) -> bool:
    return self._closed

  def close(self) -> None:
    """Removes the host files spooled during this session."""
    while self._spool_paths:
      spool_path = self._spool_paths.pop()
      try:
        os.remove(spool_path)
      except FileNotFoundError:
        pass
    self._closed = True

  def push(self,
           stream: BinaryIO,
           remote_path: str,
           permissions: int,
           timestamp: datetime.datetime,
           progress_callback: Optional[sync_service_base.ProgressCallback]
           = None,
           cancellation_event: Optional[threading.Event] = None) -> None:
    """Pushes the content of a stream to a file on the device."""
    if self._closed:
      raise errors.DeviceIOError(
          f"Sync session with device {self.device.serial} is closed.")

    spool_path = self._spool(stream, progress_callback, cancellation_event)
    logger.debug(f"Pushing {spool_path} to {remote_path} on device "
                 f"{self.device.serial}")
    self._adb_client.run(self.device, ["push", spool_path, remote_path])
    self._run_silent_command(
        _COMMAND_CHMOD.format(permissions=permissions, remote_path=remote_path))
    self._run_silent_command(
        _COMMAND_TOUCH.format(epoch=int(timestamp.timestamp()),
                              remote_path=remote_path))
    if progress_callback is not None:
      progress_callback(100)

  def _run_silent_command(self, command: str) -> None:
    """Runs a shell command which prints nothing when it succeeds.

    Args:
      command: The shell command.

    Raises:
      DeviceIOError: if the command printed anything.
    """
    receiver = _OutputLinesReceiver()
    self._adb_client.execute_shell_command(self.device, command, receiver)
    if receiver.lines:
      raise errors.DeviceIOError(
          f"{command!r} failed on device {self.device.serial}: "
          f"{' '.join(receiver.lines)}")

  def _spool(self,
             stream: BinaryIO,
             progress_callback: Optional[sync_service_base.ProgressCallback],
             cancellation_event: Optional[threading.Event]) -> str:
    """Copies the stream into a host temporary file and returns its path."""
    total_size = _get_stream_size(stream)
    spool_file = tempfile.NamedTemporaryFile(
        prefix="apkm_sync_", delete=False)
    self._spool_paths.append(spool_file.name)
    transferred = 0
    try:
      with spool_file:
        while True:
          if cancellation_event is not None and cancellation_event.is_set():
            raise errors.OperationCancelledError(
                f"Push to device {self.device.serial} was cancelled.")
          chunk = stream.read(config.SYNC_CHUNK_SIZE)
          if not chunk:
            break
          spool_file.write(chunk)
          transferred += len(chunk)
          if progress_callback is not None and total_size:
            # 100% is reported once the file is on the device.
            progress_callback(min(99, transferred * 100 // total_size))
    except errors.DeviceIOError:
      raise
    except OSError as err:
      raise errors.DeviceIOError(
          f"Unable to read the package stream for device "
          f"{self.device.serial}: {err!r}") from err
    return spool_file.name


def create_sync_service(
    device: data_types.DeviceData,
    adb_client: Optional[adb_client_lib.AdbClient] = None
) -> AdbSyncService:
  """Returns a new adb sync session for the device.

  Args:
    device: Device to transfer files to.
    adb_client: Client used to run adb commands. A new one is created if not
      provided.
  """
  if adb_client is None:
    adb_client = adb_client_lib.AdbClient()
  return AdbSyncService(device, adb_client)


def get_sync_service_factory(
    adb_client: adb_client_lib.AdbClient
) -> sync_service_base.SyncServiceFactory:
  """Returns a sync session factory bound to the given adb client."""
  return functools.partial(create_sync_service, adb_client=adb_client)
