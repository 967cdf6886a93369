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

"""Package management for Android devices.

PackageManager installs, uninstalls and inspects Android packages on a single
device. Shell commands go through a command channel and package files through
sync sessions created by a sync service factory; both are supplied by the
caller.

The installed packages are cached in PackageManager.packages. The cache is
replaced as a whole by refresh_packages() and is never partially updated.
"""
import datetime
import os
import posixpath
import threading
from typing import Mapping, Optional

from apk_manager import apkm_logger
from apk_manager import config
from apk_manager import data_types
from apk_manager import decorators
from apk_manager import device_validator
from apk_manager import errors
from apk_manager.interfaces import command_channel_base
from apk_manager.interfaces import sync_service_base
from apk_manager.receivers import install_receiver
from apk_manager.receivers import package_list_receiver
from apk_manager.receivers import version_info_receiver
import immutabledict

logger = apkm_logger.get_logger()

_COMMAND_LIST_PACKAGES = "pm list packages -f"
_COMMAND_LIST_THIRD_PARTY_PACKAGES = "pm list packages -f -3"
_COMMAND_INSTALL = "pm install {reinstall_flag}{remote_file_path}"
_COMMAND_UNINSTALL = "pm uninstall {package_name}"
_COMMAND_DUMPSYS_PACKAGE = "dumpsys package {package_name}"
_COMMAND_REMOVE_FILE = "rm {remote_file_path}"
_REINSTALL_FLAG = "-r "


class PackageManager:
  """Manages the packages installed on an Android device."""

  def __init__(
      self,
      device: data_types.DeviceData,
      command_channel: command_channel_base.CommandChannelBase,
      sync_service_factory: sync_service_base.SyncServiceFactory,
      third_party_only: bool = False,
      cleanup_on_failure: bool = False,
      refresh_on_init: bool = False):
    """Creates a package manager for the device.

    Args:
      device: The device to manage packages on.
      command_channel: Channel used to run shell commands on the device.
      sync_service_factory: Returns a new file transfer session for a device.
      third_party_only: Only list third party packages in the package cache.
      cleanup_on_failure: Also remove the pushed package file from the device
        when its installation fails.
      refresh_on_init: Refresh the package cache right away.

    Raises:
      ValueError: if device is None.
    """
    if device is None:
      raise ValueError("PackageManager requires a device.")
    self._device = device
    self._command_channel = command_channel
    self._sync_service_factory = sync_service_factory
    self._third_party_only = third_party_only
    self._cleanup_on_failure = cleanup_on_failure
    self._packages = immutabledict.immutabledict()
    if refresh_on_init:
      self.refresh_packages()

  @property
  def device(self) -> data_types.DeviceData:
    """The device whose packages are managed."""
    return self._device

  @property
  def device_name(self) -> str:
    return self._device.serial

  @property
  def third_party_only(self) -> bool:
    """Whether the package cache only lists third party packages."""
    return self._third_party_only

  @decorators.DynamicProperty
  def packages(self) -> Mapping[str, str]:
    """Installed packages as of the last successful refresh.

    Maps package names to the package file paths on the device.
    """
    return self._packages

  def get_package_path(self, package_name: str) -> Optional[str]:
    """Returns the cached install path of the package, or None if unknown."""
    return self._packages.get(package_name)

  def has_package(self, package_name: str) -> bool:
    """Returns whether the package was installed as of the last refresh."""
    return package_name in self._packages

  @decorators.LogDecorator(logger)
  def refresh_packages(self) -> None:
    """Refreshes the package cache from the device.

    The cache is left unchanged if the listing fails.
    """
    device_validator.validate_device(self._device)

    receiver = package_list_receiver.PackageListReceiver()
    if self._third_party_only:
      command = _COMMAND_LIST_THIRD_PARTY_PACKAGES
    else:
      command = _COMMAND_LIST_PACKAGES
    self._command_channel.execute_shell_command(self._device, command, receiver)

    self._packages = immutabledict.immutabledict(receiver.packages)

  @decorators.LogDecorator(logger)
  def install_package(self,
                      package_file_path: str,
                      reinstall: bool = False) -> None:
    """Installs an Android package from the host on the device.

    The package is pushed to a temporary directory on the device, installed
    from there and then deleted. If the installation fails, the pushed file
    is left in the temporary directory unless cleanup_on_failure was set.

    Args:
      package_file_path: Path to the package file on the host.
      reinstall: Reinstall an existing package and keep its data.

    Raises:
      DeviceNotReadyError: if the device is not online.
      DeviceIOError: if the package could not be pushed or removed.
      PackageInstallationError: if the device rejected the package.
    """
    device_validator.validate_device(self._device)

    remote_file_path = self.push_package(package_file_path)
    try:
      self.install_remote_package(remote_file_path, reinstall=reinstall)
    except errors.PackageInstallationError:
      if self._cleanup_on_failure:
        self._remove_remote_package_quietly(remote_file_path)
      raise
    self.remove_remote_package(remote_file_path)

  @decorators.LogDecorator(logger)
  def install_remote_package(self,
                             remote_file_path: str,
                             reinstall: bool = False) -> None:
    """Installs a package file which is already on the device.

    Args:
      remote_file_path: Path to the package file on the device.
      reinstall: Reinstall an existing package and keep its data.

    Raises:
      DeviceNotReadyError: if the device is not online.
      PackageInstallationError: if the device rejected the package.
    """
    device_validator.validate_device(self._device)

    receiver = install_receiver.InstallReceiver()
    reinstall_flag = _REINSTALL_FLAG if reinstall else ""
    command = _COMMAND_INSTALL.format(
        reinstall_flag=reinstall_flag, remote_file_path=remote_file_path)
    self._command_channel.execute_shell_command(self._device, command, receiver)

    if receiver.error_message:
      raise errors.PackageInstallationError(
          receiver.error_message, device_name=self.device_name)

  @decorators.LogDecorator(logger)
  def uninstall_package(self, package_name: str) -> None:
    """Uninstalls a package from the device.

    Args:
      package_name: Name of the package, e.g. "com.example.app".

    Raises:
      DeviceNotReadyError: if the device is not online.
      PackageInstallationError: if the device failed to uninstall the package.
    """
    device_validator.validate_device(self._device)

    receiver = install_receiver.InstallReceiver()
    command = _COMMAND_UNINSTALL.format(package_name=package_name)
    self._command_channel.execute_shell_command(self._device, command, receiver)

    if receiver.error_message:
      raise errors.PackageInstallationError(
          receiver.error_message, device_name=self.device_name)

  @decorators.LogDecorator(logger)
  def get_version_info(self, package_name: str) -> data_types.VersionInfo:
    """Returns the version of an installed package.

    Args:
      package_name: Name of the package, e.g. "com.example.app".

    Returns:
      The package version. A default VersionInfo (code 0, empty name) if the
      package is not installed.
    """
    device_validator.validate_device(self._device)

    receiver = version_info_receiver.VersionInfoReceiver()
    command = _COMMAND_DUMPSYS_PACKAGE.format(package_name=package_name)
    self._command_channel.execute_shell_command(self._device, command, receiver)
    return receiver.version_info

  @decorators.LogDecorator(logger, level=decorators.DEBUG)
  def push_package(
      self,
      local_file_path: str,
      cancellation_event: Optional[threading.Event] = None) -> str:
    """Pushes a package file to the temporary directory on the device.

    Args:
      local_file_path: Path to the package file on the host.
      cancellation_event: Forwarded to the sync session; the push is aborted
        once the event is set.

    Returns:
      Path of the pushed file on the device.

    Raises:
      DeviceNotReadyError: if the device is not online.
      DeviceError: if the file name contains whitespace. Remote paths are not
        quoted in the shell commands which use them.
      DeviceIOError: if the file could not be read or transferred. A partially
        transferred file is not removed.
    """
    device_validator.validate_device(self._device)

    package_file_name = os.path.basename(local_file_path)
    if any(char.isspace() for char in package_file_name):
      raise errors.DeviceError(
          f"{self.device_name} package file name {package_file_name!r} "
          "contains whitespace.")
    remote_file_path = posixpath.join(
        config.TEMP_INSTALLATION_DIRECTORY, package_file_name)
    logger.debug(f"Uploading {package_file_name} onto device "
                 f"{self.device_name!r}")
    try:
      with self._sync_service_factory(self._device) as sync:
        with open(local_file_path, "rb") as stream:
          timestamp = datetime.datetime.fromtimestamp(
              os.path.getmtime(local_file_path))
          sync.push(stream, remote_file_path, config.PACKAGE_FILE_MODE,
                    timestamp, progress_callback=None,
                    cancellation_event=cancellation_event)
    except OSError as err:
      logger.error(f"{self.device_name} unable to push {local_file_path} to "
                   f"{remote_file_path}. Reason: {err!r}")
      if isinstance(err, errors.DeviceIOError):
        raise
      raise errors.DeviceIOError(
          f"{self.device_name} unable to push {local_file_path} to "
          f"{remote_file_path}: {err}") from err
    return remote_file_path

  @decorators.LogDecorator(logger, level=decorators.DEBUG)
  def remove_remote_package(self, remote_file_path: str) -> None:
    """Deletes a pushed package file from the device.

    Args:
      remote_file_path: Path of the file on the device.

    Raises:
      DeviceNotReadyError: if the device is not online.
      DeviceIOError: if the delete command could not be run.
    """
    device_validator.validate_device(self._device)

    command = _COMMAND_REMOVE_FILE.format(remote_file_path=remote_file_path)
    try:
      self._command_channel.execute_shell_command(self._device, command, None)
    except (OSError, errors.ChannelError) as err:
      logger.error(f"{self.device_name} failed to delete temporary package "
                   f"{remote_file_path}. Reason: {err!r}")
      if isinstance(err, errors.DeviceIOError):
        raise
      raise errors.DeviceIOError(
          f"{self.device_name} failed to delete temporary package "
          f"{remote_file_path}: {err}") from err

  def _remove_remote_package_quietly(self, remote_file_path: str) -> None:
    """Removes the pushed file after a failed install, logging any failure."""
    try:
      self.remove_remote_package(remote_file_path)
    except (errors.DeviceIOError, errors.DeviceNotReadyError) as err:
      logger.warning(f"{self.device_name} left {remote_file_path} on the "
                     f"device after the failed install: {err!r}")
