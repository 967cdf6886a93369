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

"""Readiness check performed before every remote package operation."""
from apk_manager import data_types
from apk_manager import errors


def validate_device(device: data_types.DeviceData) -> None:
  """Checks that the device is online.

  Only inspects the state already stored on the device reference; the state
  may still change between this check and the next remote call.

  Args:
    device: The device to check.

  Raises:
    DeviceNotReadyError: If the device is not in the online state.
  """
  if device.state is not data_types.DeviceState.ONLINE:
    state = getattr(device.state, "value", device.state)
    raise errors.DeviceNotReadyError(device.serial, state)
