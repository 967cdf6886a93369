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

"""Unit tests for the PackageManager."""
import datetime
import os
import threading

from absl.testing import parameterized
from apk_manager import data_types
from apk_manager import errors
from apk_manager import package_manager
from apk_manager.tests.unit_tests.utils import fake_channels
from apk_manager.tests.unit_tests.utils import unit_test_case
import immutabledict

_SERIAL = "emulator-5554"
_PACKAGE_NAME = "com.example.app"
_PACKAGE_PATH = "/data/app/com.example.app-1.apk"
_REMOTE_PATH = "/data/local/tmp/app.apk"
_APK_CONTENT = b"PK\x03\x04fake apk"

_FAKE_RESPONSE_DICT = immutabledict.immutabledict({
    "pm list packages -f":
        "package:/data/app/com.example.app-1.apk=com.example.app\n"
        "package:/system/priv-app/Shell/Shell.apk=com.android.shell\n",
    "pm list packages -f -3":
        "package:/data/app/com.example.app-1.apk=com.example.app\n",
    "pm install /data/local/tmp/app.apk": "Success\n",
    "pm install -r /data/local/tmp/app.apk": "Success\n",
    "pm uninstall com.example.app": "Success\n",
    "pm uninstall com.missing.app": "Failure [DELETE_FAILED_INTERNAL_ERROR]\n",
    "dumpsys package com.example.app":
        "Packages:\n"
        "  Package [com.example.app] (123abc):\n"
        "    userId=10123\n"
        "    pkg=Package{123abc com.example.app}\n"
        "    versionCode=42 minSdk=26 targetSdk=33\n"
        "    versionName=1.2.3\n",
    "dumpsys package com.missing.app": "Unable to find package: x\n",
})

_NOT_ONLINE_STATES = tuple(
    (state.name, state) for state in data_types.DeviceState
    if state is not data_types.DeviceState.ONLINE)


class PackageManagerTests(unit_test_case.UnitTestCase):
  """Unit tests for PackageManager."""

  def setUp(self):
    super().setUp()
    self.device = data_types.DeviceData(
        serial=_SERIAL, state=data_types.DeviceState.ONLINE)
    self.channel = fake_channels.FakeCommandChannel(_FAKE_RESPONSE_DICT)
    self.sync_factory = fake_channels.FakeSyncServiceFactory()
    self.uut = package_manager.PackageManager(
        self.device, self.channel, self.sync_factory)
    self.apk_path = self.create_file("app.apk", _APK_CONTENT)

  def test_init_requires_device(self):
    """Verifies a device is required."""
    with self.assertRaises(ValueError):
      package_manager.PackageManager(None, self.channel, self.sync_factory)

  def test_init_has_empty_inventory_and_issues_no_commands(self):
    """Verifies construction performs no I/O by default."""
    self.assertEqual(self.uut.packages, {})
    self.assertEqual(self.channel.calls, [])
    self.assertIs(self.uut.device, self.device)
    self.assertEqual(self.uut.device_name, _SERIAL)
    self.assertFalse(self.uut.third_party_only)

  def test_init_with_refresh_on_init(self):
    """Verifies refresh_on_init lists packages during construction."""
    uut = package_manager.PackageManager(
        self.device, self.channel, self.sync_factory, third_party_only=True,
        refresh_on_init=True)

    self.assertTrue(uut.third_party_only)
    self.assertEqual(self.channel.commands, ["pm list packages -f -3"])
    self.assertEqual(uut.packages, {_PACKAGE_NAME: _PACKAGE_PATH})

  @parameterized.named_parameters(
      ("all_packages", False, "pm list packages -f"),
      ("third_party_only", True, "pm list packages -f -3"))
  def test_refresh_packages_command(self, third_party_only, expected_command):
    """Verifies the listing command depends on third_party_only."""
    uut = package_manager.PackageManager(
        self.device, self.channel, self.sync_factory,
        third_party_only=third_party_only)

    uut.refresh_packages()

    self.assertEqual(self.channel.commands, [expected_command])

  def test_refresh_packages_replaces_inventory(self):
    """Verifies the inventory is exactly the result of the last refresh."""
    self.channel.behavior_dict["pm list packages -f"] = (
        f"package:{_PACKAGE_PATH}={_PACKAGE_NAME}\n")

    self.uut.refresh_packages()

    self.assertEqual(dict(self.uut.packages), {_PACKAGE_NAME: _PACKAGE_PATH})
    self.assertTrue(self.uut.has_package(_PACKAGE_NAME))
    self.assertEqual(self.uut.get_package_path(_PACKAGE_NAME), _PACKAGE_PATH)
    self.assertIsNone(self.uut.get_package_path("com.android.shell"))

  def test_refresh_packages_drops_removed_packages(self):
    """Verifies packages missing from a later listing disappear."""
    self.uut.refresh_packages()
    self.assertIn("com.android.shell", self.uut.packages)
    self.channel.behavior_dict["pm list packages -f"] = (
        f"package:{_PACKAGE_PATH}={_PACKAGE_NAME}\n")

    self.uut.refresh_packages()

    self.assertNotIn("com.android.shell", self.uut.packages)

  def test_refresh_packages_swaps_snapshot(self):
    """Verifies a previously read snapshot is not modified by a refresh."""
    self.uut.refresh_packages()
    snapshot = self.uut.packages
    self.channel.behavior_dict["pm list packages -f"] = ""

    self.uut.refresh_packages()

    self.assertLen(snapshot, 2)
    self.assertEmpty(self.uut.packages)
    with self.assertRaises(TypeError):
      snapshot["com.new.app"] = "/data/app/new.apk"

  def test_failed_refresh_keeps_previous_inventory(self):
    """Verifies a channel failure leaves the inventory unchanged."""
    self.uut.refresh_packages()
    previous = dict(self.uut.packages)
    self.channel.errors["pm list packages -f"] = errors.ChannelError(
        "error: closed")

    with self.assertRaises(errors.ChannelError):
      self.uut.refresh_packages()

    self.assertEqual(dict(self.uut.packages), previous)

  @parameterized.named_parameters(*_NOT_ONLINE_STATES)
  def test_operations_fail_when_device_not_online(self, state):
    """Verifies every public operation checks the device state first."""
    self.device.state = state
    operations = (
        self.uut.refresh_packages,
        lambda: self.uut.install_package(self.apk_path),
        lambda: self.uut.install_remote_package(_REMOTE_PATH),
        lambda: self.uut.uninstall_package(_PACKAGE_NAME),
        lambda: self.uut.get_version_info(_PACKAGE_NAME),
        lambda: self.uut.push_package(self.apk_path),
        lambda: self.uut.remove_remote_package(_REMOTE_PATH),
    )
    for operation in operations:
      with self.assertRaises(errors.DeviceNotReadyError):
        operation()

    self.assertEqual(self.channel.calls, [])
    self.assertEqual(self.sync_factory.sessions, [])

  def test_push_package_computes_remote_path(self):
    """Verifies the remote path only depends on the local file name."""
    nested_directory = os.path.join(self.artifacts_directory, "out", "release")
    os.makedirs(nested_directory, exist_ok=True)
    nested_apk_path = os.path.join(nested_directory, "app.apk")
    with open(nested_apk_path, "wb") as open_file:
      open_file.write(_APK_CONTENT)

    self.assertEqual(self.uut.push_package(self.apk_path), _REMOTE_PATH)
    self.assertEqual(self.uut.push_package(nested_apk_path), _REMOTE_PATH)

  def test_push_package_rejects_file_name_with_whitespace(self):
    """Verifies names which would split the unquoted remote path are refused."""
    apk_path = self.create_file("my app.apk", _APK_CONTENT)

    with self.assertRaisesRegex(errors.DeviceError, "contains whitespace"):
      self.uut.install_package(apk_path)

    self.assertEqual(self.sync_factory.sessions, [])
    self.assertEqual(self.channel.calls, [])

  def test_remove_remote_package_offline_device(self):
    """Verifies no rm is sent to a device which is not online."""
    self.device.state = data_types.DeviceState.OFFLINE

    with self.assertRaises(errors.DeviceNotReadyError):
      self.uut.remove_remote_package(_REMOTE_PATH)

    self.assertEqual(self.channel.commands, [])

  def test_push_package_pushes_file(self):
    """Verifies the file content, mode and timestamp are pushed."""
    os.utime(self.apk_path, (1600000000, 1600000000))

    self.uut.push_package(self.apk_path)

    session = self.sync_factory.sessions[0]
    self.assertTrue(session.closed)
    self.assertIs(session.device, self.device)
    push = session.pushes[0]
    self.assertEqual(push.content, _APK_CONTENT)
    self.assertEqual(push.remote_path, _REMOTE_PATH)
    self.assertEqual(push.permissions, 0o644)
    self.assertEqual(push.timestamp,
                     datetime.datetime.fromtimestamp(1600000000))
    self.assertIsNone(push.progress_callback)
    self.assertIsNone(push.cancellation_event)

  def test_push_package_forwards_cancellation_event(self):
    """Verifies the cancellation event is passed through to the session."""
    event = threading.Event()

    self.uut.push_package(self.apk_path, cancellation_event=event)

    self.assertIs(self.sync_factory.sessions[0].pushes[0].cancellation_event,
                  event)

  def test_push_package_missing_local_file(self):
    """Verifies a local open failure raises DeviceIOError and closes sync."""
    missing_path = os.path.join(self.artifacts_directory, "missing.apk")

    with self.assertRaises(errors.DeviceIOError) as context:
      self.uut.push_package(missing_path)

    self.assertIsInstance(context.exception, IOError)
    self.assertIsInstance(context.exception.__cause__, FileNotFoundError)
    self.assertLen(self.sync_factory.sessions, 1)
    self.assertTrue(self.sync_factory.sessions[0].closed)

  def test_push_package_transfer_failure(self):
    """Verifies a transfer failure raises DeviceIOError and closes sync."""
    self.sync_factory.push_error = OSError("connection reset")

    with self.assertLogs(package_manager.logger, level="ERROR"):
      with self.assertRaises(errors.DeviceIOError):
        self.uut.push_package(self.apk_path)

    self.assertTrue(self.sync_factory.sessions[0].closed)
    self.assertEqual(self.channel.calls, [])

  def test_push_package_device_io_error_is_not_rewrapped(self):
    """Verifies DeviceIOErrors from the session propagate unchanged."""
    error = errors.OperationCancelledError("cancelled")
    self.sync_factory.push_error = error

    with self.assertRaises(errors.OperationCancelledError) as context:
      self.uut.push_package(self.apk_path)

    self.assertIs(context.exception, error)

  @parameterized.named_parameters(
      ("install", False, "pm install /data/local/tmp/app.apk"),
      ("reinstall", True, "pm install -r /data/local/tmp/app.apk"))
  def test_install_package_success(self, reinstall, install_command):
    """Verifies push, install and cleanup happen in order."""
    self.uut.install_package(self.apk_path, reinstall=reinstall)

    self.assertEqual(self.channel.commands,
                     [install_command, "rm /data/local/tmp/app.apk"])
    self.assertEqual(self.sync_factory.sessions[0].pushes[0].remote_path,
                     _REMOTE_PATH)
    self.assertEqual("-r " in self.channel.commands[0], reinstall)

  def test_install_package_cleanup_discards_output(self):
    """Verifies the rm command is issued without a receiver."""
    self.uut.install_package(self.apk_path)

    _, command, receiver = self.channel.calls[-1]
    self.assertEqual(command, "rm /data/local/tmp/app.apk")
    self.assertIsNone(receiver)

  def test_install_package_failure_leaves_remote_file(self):
    """Verifies the pushed file is not deleted when the install fails."""
    self.channel.behavior_dict["pm install /data/local/tmp/app.apk"] = (
        "Failure [INSTALL_FAILED_INSUFFICIENT_STORAGE]\n")

    with self.assertRaises(errors.PackageInstallationError) as context:
      self.uut.install_package(self.apk_path)

    self.assertEqual(str(context.exception),
                     "INSTALL_FAILED_INSUFFICIENT_STORAGE")
    self.assertNotIn("rm /data/local/tmp/app.apk", self.channel.commands)

  def test_install_package_failure_with_cleanup_on_failure(self):
    """Verifies cleanup_on_failure removes the file and keeps the error."""
    uut = package_manager.PackageManager(
        self.device, self.channel, self.sync_factory, cleanup_on_failure=True)
    self.channel.behavior_dict["pm install /data/local/tmp/app.apk"] = (
        "Failure [INSTALL_FAILED_INVALID_APK]\n")

    with self.assertRaises(errors.PackageInstallationError) as context:
      uut.install_package(self.apk_path)

    self.assertEqual(context.exception.error_message,
                     "INSTALL_FAILED_INVALID_APK")
    self.assertEqual(self.channel.commands[-1], "rm /data/local/tmp/app.apk")

  def test_install_package_failure_with_failed_cleanup_on_failure(self):
    """Verifies a failed cleanup doesn't hide the installation error."""
    uut = package_manager.PackageManager(
        self.device, self.channel, self.sync_factory, cleanup_on_failure=True)
    self.channel.behavior_dict["pm install /data/local/tmp/app.apk"] = (
        "Failure [INSTALL_FAILED_INVALID_APK]\n")
    self.channel.errors["rm /data/local/tmp/app.apk"] = errors.ChannelError(
        "error: closed")

    with self.assertLogs(package_manager.logger, level="WARNING"):
      with self.assertRaises(errors.PackageInstallationError):
        uut.install_package(self.apk_path)

  def test_install_package_push_failure_skips_install(self):
    """Verifies nothing is installed if the push fails."""
    self.sync_factory.push_error = OSError("No space left on device")

    with self.assertRaises(errors.DeviceIOError):
      self.uut.install_package(self.apk_path)

    self.assertEqual(self.channel.calls, [])

  def test_install_package_cleanup_failure(self):
    """Verifies a failed rm raises DeviceIOError after a good install."""
    self.channel.errors["rm /data/local/tmp/app.apk"] = errors.ChannelError(
        "error: closed")

    with self.assertLogs(package_manager.logger, level="ERROR"):
      with self.assertRaises(errors.DeviceIOError) as context:
        self.uut.install_package(self.apk_path)

    self.assertIsInstance(context.exception.__cause__, errors.ChannelError)
    self.assertIn("pm install /data/local/tmp/app.apk", self.channel.commands)

  def test_install_remote_package_failure_message_is_verbatim(self):
    """Verifies the device error message is carried verbatim."""
    self.channel.behavior_dict["pm install /data/local/tmp/app.apk"] = (
        "Failure [INSTALL_FAILED_INSUFFICIENT_STORAGE]\n")

    with self.assertRaises(errors.PackageInstallationError) as context:
      self.uut.install_remote_package(_REMOTE_PATH)

    self.assertEqual(context.exception.error_message,
                     "INSTALL_FAILED_INSUFFICIENT_STORAGE")
    self.assertEqual(context.exception.device_name, _SERIAL)

  def test_install_remote_package_success_without_push(self):
    """Verifies installing a remote file doesn't push or delete anything."""
    self.uut.install_remote_package(_REMOTE_PATH, reinstall=True)

    self.assertEqual(self.channel.commands,
                     ["pm install -r /data/local/tmp/app.apk"])
    self.assertEqual(self.sync_factory.sessions, [])

  @parameterized.named_parameters(
      ("no_output", ""),
      ("java_exception",
       "Exception occurred while executing 'install':\n"
       "java.lang.IllegalArgumentException: Error: Can't open file: "
       "/data/local/tmp/app.apk\n"))
  def test_install_package_without_success_fails(self, output):
    """Verifies the file is kept and an error raised unless "Success" is seen."""
    self.channel.behavior_dict["pm install /data/local/tmp/app.apk"] = output

    with self.assertRaisesRegex(errors.PackageInstallationError,
                                "Unknown Error"):
      self.uut.install_package(self.apk_path)

    self.assertEqual(self.channel.commands,
                     ["pm install /data/local/tmp/app.apk"])

  def test_install_remote_package_channel_error_propagates(self):
    """Verifies channel failures are not translated."""
    error = errors.ChannelError("adb: device offline")
    self.channel.errors["pm install /data/local/tmp/app.apk"] = error

    with self.assertRaises(errors.ChannelError) as context:
      self.uut.install_remote_package(_REMOTE_PATH)

    self.assertIs(context.exception, error)

  def test_uninstall_package_success(self):
    """Verifies the uninstall command."""
    self.uut.uninstall_package(_PACKAGE_NAME)

    self.assertEqual(self.channel.commands, ["pm uninstall com.example.app"])

  def test_uninstall_package_failure(self):
    """Verifies a reported failure raises PackageInstallationError."""
    with self.assertRaisesRegex(errors.PackageInstallationError,
                                "DELETE_FAILED_INTERNAL_ERROR"):
      self.uut.uninstall_package("com.missing.app")

  def test_get_version_info(self):
    """Verifies the version is parsed from dumpsys output."""
    version_info = self.uut.get_version_info(_PACKAGE_NAME)

    self.assertEqual(self.channel.commands,
                     ["dumpsys package com.example.app"])
    self.assertEqual(
        version_info,
        data_types.VersionInfo(version_code=42, version_name="1.2.3"))

  def test_get_version_info_unknown_package(self):
    """Verifies an unknown package yields an empty VersionInfo."""
    version_info = self.uut.get_version_info("com.missing.app")

    self.assertEqual(version_info, data_types.VersionInfo())

  def test_unexpected_errors_are_wrapped(self):
    """Verifies non-DeviceErrors raised by a channel are wrapped."""
    self.channel.errors["pm uninstall com.example.app"] = KeyError("boom")

    with self.assertRaisesRegex(errors.DeviceError,
                                "uninstall_package failed. KeyError"):
      self.uut.uninstall_package(_PACKAGE_NAME)


if __name__ == "__main__":
  unit_test_case.main()
