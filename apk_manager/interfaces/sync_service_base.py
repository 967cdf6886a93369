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

"""Sync (file transfer) service interface.

A sync service is a scoped file transfer session with a single device. Use it
as a context manager so the session is closed on every exit path:

  with sync_service_factory(device) as sync:
    sync.push(stream, remote_path, 0o644, timestamp)
"""
import abc
import datetime
import threading
from typing import BinaryIO, Callable, Optional

from apk_manager import data_types

ProgressCallback = Callable[[int], None]
SyncServiceFactory = Callable[[data_types.DeviceData], "SyncServiceBase"]


class SyncServiceBase(abc.ABC):
  """Abstract base class for file transfer sessions."""

  def __init__(self, device: data_types.DeviceData):
    self._device = device

  @property
  def device(self) -> data_types.DeviceData:
    """The device this session transfers files to."""
    return self._device

  def __enter__(self) -> "SyncServiceBase":
    return self

  def __exit__(self, exc_type, exc_value, traceback) -> None:
    self.close()

  def close(self) -> None:
    """Releases the resources held by the session."""

  @abc.abstractmethod
  def push(self,
           stream: BinaryIO,
           remote_path: str,
           permissions: int,
           timestamp: datetime.datetime,
           progress_callback: Optional[ProgressCallback] = None,
           cancellation_event: Optional[threading.Event] = None) -> None:
    """Pushes the content of a stream to a file on the device.

    Args:
      stream: Binary stream to read the file content from.
      remote_path: Destination path on the device.
      permissions: POSIX mode bits of the remote file, e.g. 0o644.
      timestamp: Modification time to set on the remote file.
      progress_callback: Called with the transfer progress in percent.
      cancellation_event: Transfer is aborted once this event is set.

    Raises:
      DeviceIOError: if the transfer failed.
      OperationCancelledError: if the transfer was cancelled.
    """
