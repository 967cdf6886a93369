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

"""Simple data types without dependencies on other apk_manager modules."""
import dataclasses
import enum
from typing import Optional


@enum.unique
class DeviceState(enum.Enum):
  """Device connection states as found in output of 'adb devices'.

  The values come from connection_state_name() in
  https://android.googlesource.com/platform/system/adb/+/refs/heads/master/transport.cpp#759.
  """
  BOOTLOADER = "bootloader"
  ONLINE = "device"
  HOST = "host"
  OFFLINE = "offline"
  NO_PERMISSIONS = "no permissions"
  RECOVERY = "recovery"
  SIDELOAD = "sideload"
  UNAUTHORIZED = "unauthorized"
  UNKNOWN = "unknown"
  # Not defined by ADB (in case we fail to parse the state).
  UNRECOGNIZED = "unrecognized"


@dataclasses.dataclass
class DeviceData:
  """A device known to the adb server.

  The state is owned by whoever tracks the device connection; package
  operations only read it.
  """
  serial: str  # Serial number ("abcde123") or IP and port ("1.2.3.4:5555").
  state: DeviceState = DeviceState.UNKNOWN
  product: str = ""
  model: str = ""
  device: str = ""
  transport_id: Optional[int] = None


@dataclasses.dataclass(frozen=True)
class VersionInfo:
  """Version metadata of a single installed package.

  The default instance (code 0, empty name) stands for "no version found".
  """
  version_code: int = 0
  version_name: str = ""
