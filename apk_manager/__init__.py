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

"""APK Manager installs and inspects Android packages on attached devices.

It is meant for tooling that provisions and tests Android devices: listing the
installed packages, pushing and installing APKs, uninstalling packages and
querying package versions.

Library usage:
  device = apk_manager.adb_client.get_device("emulator-5554")
  client = apk_manager.AdbClient()
  manager = apk_manager.PackageManager(
      device, client, apk_manager.sync_service.get_sync_service_factory(client))
  manager.install_package("/path/to/app.apk", reinstall=True)

Command Line Interface (CLI):
  "apkm devices"
  "apkm packages emulator-5554 --third_party_only"
  "apkm install emulator-5554 /path/to/app.apk --reinstall"
  "apkm uninstall emulator-5554 com.example.app"
  "apkm version emulator-5554 com.example.app"
"""
import logging

from apk_manager import _version
from apk_manager import adb_client
from apk_manager import apkm_logger
from apk_manager import package_manager
from apk_manager import sync_service

AdbClient = adb_client.AdbClient
PackageManager = package_manager.PackageManager
version = _version.version
__version__ = _version.version

# Defend against inadvertent basicConfig, which adds log noise
logging.getLogger().addHandler(logging.NullHandler())

# Set up logger
apkm_logger.initialize_logger()
