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

"""APK Manager CLI.

The CLI is generated dynamically by Python Fire:
https://github.com/google/python-fire.

This is where the default adb channels are put together; library users pass
their own channels to PackageManager.
"""
import sys
from typing import Dict, NoReturn, Optional, Sequence

import fire
from apk_manager import _version
from apk_manager import adb_client
from apk_manager import apkm_logger
from apk_manager import errors
from apk_manager import package_manager
from apk_manager import sync_service

logger = apkm_logger.get_logger()

VERSION_FLAG = "-v"
FLAG_MARKER = "--"
OMIT_FLAGS = ["help"]
_CLI_NAME = "apkm"
_FORMAT_ROW = "  {:40s}  {}"


def _get_flags(args: Sequence[str]) -> Dict[str, bool]:
  """Parses flags out of array of CLI args.

  Flags in OMIT_FLAGS will not be returned.

  Args:
    args: CLI arguments provided by the user.

  Returns:
    Parsed flags to pass to the CLI.
  """
  flags = {}
  for arg in args:
    if arg.startswith(FLAG_MARKER):
      flag_name = arg[len(FLAG_MARKER):]
      if flag_name and flag_name not in OMIT_FLAGS:
        flags[flag_name] = True
    else:
      break  # Ignore flags after initial CLI call
  return flags


class PackageManagerCli:
  """Installs and inspects Android packages on devices attached over adb."""

  def __init__(self, debug: bool = False, quiet: bool = False):
    if debug:
      apkm_logger.stream_debug()
    if quiet:
      apkm_logger.silence_progress_messages()
    self._adb_client = adb_client.AdbClient()

  def close(self) -> None:
    """Restores stdout logging silenced by --quiet."""
    apkm_logger.reenable_progress_messages()

  def devices(self) -> None:
    """Lists the devices known to adb and their states."""
    devices = adb_client.adb_devices(adb_path=self._adb_client.adb_path)
    if not devices:
      logger.info("No devices found.")
      return
    for device in devices:
      description = device.state.value
      if device.model:
        description += f" ({device.model})"
      logger.info(_FORMAT_ROW.format(device.serial, description))

  def packages(self, serial: str, third_party_only: bool = False) -> None:
    """Lists the packages installed on a device with their paths.

    Args:
      serial: ADB serial of the device.
      third_party_only: Only list third party packages.
    """
    manager = self._create_package_manager(
        serial, third_party_only=third_party_only)
    manager.refresh_packages()
    for package_name in sorted(manager.packages):
      logger.info(
          _FORMAT_ROW.format(package_name, manager.packages[package_name]))

  def install(self,
              serial: str,
              package_path: str,
              reinstall: bool = False,
              cleanup_on_failure: bool = False) -> None:
    """Installs an APK from the host on a device.

    Args:
      serial: ADB serial of the device.
      package_path: Path to the APK on the host.
      reinstall: Reinstall an existing package and keep its data.
      cleanup_on_failure: Delete the pushed APK from the device even if the
        installation fails.
    """
    manager = self._create_package_manager(
        serial, cleanup_on_failure=cleanup_on_failure)
    manager.install_package(package_path, reinstall=reinstall)

  def uninstall(self, serial: str, package_name: str) -> None:
    """Uninstalls a package from a device.

    Args:
      serial: ADB serial of the device.
      package_name: Name of the package, e.g. "com.example.app".
    """
    self._create_package_manager(serial).uninstall_package(package_name)

  def version(self, serial: str, package_name: str) -> None:
    """Shows the version of a package installed on a device.

    Args:
      serial: ADB serial of the device.
      package_name: Name of the package, e.g. "com.example.app".
    """
    version_info = self._create_package_manager(serial).get_version_info(
        package_name)
    if not version_info.version_name and not version_info.version_code:
      logger.info(f"{package_name} is not installed on {serial}.")
      return
    logger.info(f"{package_name} {version_info.version_name} "
                f"(version code {version_info.version_code})")

  def _create_package_manager(
      self, serial: str, **kwargs) -> package_manager.PackageManager:
    """Returns a PackageManager for the device using the adb channels."""
    device = adb_client.get_device(serial, adb_path=self._adb_client.adb_path)
    return package_manager.PackageManager(
        device,
        self._adb_client,
        sync_service.get_sync_service_factory(self._adb_client),
        **kwargs)


def _execute_command(command: Optional[str] = None,
                     cli_name: str = _CLI_NAME) -> int:
  """Executes the CLI command through Python Fire."""
  # Parse flags out of commands. E.g. "apkm --debug - devices" ->
  # flags = {"debug": True}, commands = ["-", "devices"].
  if command:
    args = command.split()
  else:
    args = sys.argv[1:]
  flags = _get_flags(args)
  commands = [arg for arg in args if arg[len(FLAG_MARKER):] not in flags.keys()]
  cli_inst = PackageManagerCli(**flags)

  exit_code = 0
  try:
    fire.Fire(cli_inst, commands, name=cli_name)
  except (ValueError, errors.DeviceError) as err:
    logger.error(repr(err))
    exit_code = 1
  except KeyboardInterrupt:
    exit_code = 2
  finally:
    cli_inst.close()

  return exit_code


def main(command: Optional[str] = None, cli_name: str = _CLI_NAME) -> NoReturn:
  """Main function for the apk_manager package.

  Args:
    command: Passed to Python Fire. If None, sys.argv are used instead.
    cli_name: Name of the CLI executable ("apkm").

  Raises:
    SystemExit: always calls sys.exit(<return code>).
  """
  if (VERSION_FLAG in sys.argv or
      (command and VERSION_FLAG in command.split())):
    logger.info(f"APK Manager {_version.version}")
    sys.exit(0)

  sys.exit(_execute_command(command, cli_name))


if __name__ == "__main__":
  main()
