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

"""This module defines errors raised by apk_manager.

The error subclasses are intended to make it easier to distinguish between and
handle different types of error exceptions.

error codes:
    1           Generic catch-all for DeviceError
    10 - 29     ChannelError exceptions
    30 - 39     CheckDeviceReadyError exceptions
    40 - 49     DeviceIOError exceptions
    50 - ...    Package operation exceptions
"""
from typing import Optional

from apk_manager import _version
from apk_manager import apkm_logger

logger = apkm_logger.get_logger()


def get_version_string() -> str:
  """Returns the version of apk_manager."""
  return " apk_manager version: {}.".format(_version.version)


class DeviceError(Exception):
  """Basic exception for errors raised by devices.

  Attributes:
      err_code (int): numeric code of the error.
  """
  err_code = 1

  def __init__(self, msg):
    """Inits DeviceError with 'msg' (an error message string).

    Args:
        msg (str or Exception): an error message string or an Exception
          instance.

    Note: Additionally, logs 'msg' to debug log level file.
    """
    super().__init__(msg)
    logger.debug(repr(self))


class ChannelError(DeviceError):
  """Raised when the command or sync channel fails to talk to the device.

  Covers lost connections, unexpected adb responses and missing adb binaries.
  """
  err_code = 20


class CommunicationTimeoutError(ChannelError):
  """Exceptions raised due to a timeout."""
  err_code = 10


class CheckDeviceReadyError(DeviceError):
  """DeviceError variant used in device ready checks."""
  err_code = 30

  def __init__(self,
               device_name,
               msg,
               reason=None,
               details=None,
               recovery=None):
    """Inits a CheckDeviceReadyError exception.

    Args:
        device_name (str): The name of the device.
        msg (str): An error message string of the form <error_message>
          <details>.
        reason (str): An optional message string describing the reason for
          the error.
        details (str): An optional message string describing error details.
        recovery (str): An optional message string describing further
          recovery options.
    """
    error_str = "{} {}.".format(device_name, msg)
    if reason:
      error_str += " Reason: {}.".format(reason)
    if details:
      error_str += " Details: {}.".format(details)
    if recovery:
      error_str += " Recovery: {}.".format(recovery)
    error_str += get_version_string()

    self.device_name = device_name
    super().__init__(error_str)


class DeviceNotReadyError(CheckDeviceReadyError):
  """Raised when the device is not online and cannot accept commands."""
  err_code = 31

  def __init__(self, device_name, state):
    """Inits a DeviceNotReadyError exception.

    Args:
        device_name (str): The serial of the device.
        state (str): The connection state observed on the device.
    """
    self.state = state
    super().__init__(
        device_name,
        "is not online",
        reason="device state is {!r}".format(state),
        recovery="reconnect the device and authorize the host")


class DeviceIOError(DeviceError, IOError):
  """Raised when a file cannot be read, transferred or removed."""
  err_code = 40


class OperationCancelledError(DeviceIOError):
  """Raised when a file transfer is cancelled by the caller."""
  err_code = 41


class PackageInstallationError(DeviceError):
  """Raised when the device reports a failed package install or uninstall.

  Attributes:
      error_message (str): the failure text reported by the device, verbatim.
      device_name (str): the serial of the device, if known.
  """
  err_code = 50

  def __init__(self, error_message: str, device_name: Optional[str] = None):
    self.error_message = error_message
    self.device_name = device_name
    super().__init__(error_message)
