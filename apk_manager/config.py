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

"""CONFIG FILE."""
import os.path

PACKAGE_PATH = os.path.dirname(os.path.abspath(__file__))

INSTALL_DIRECTORY = os.path.join(os.path.expanduser("~"), "apk_manager")

DEFAULT_LOG_DIRECTORY = os.path.join(INSTALL_DIRECTORY, "log")
CONFIG_DIRECTORY = os.path.join(INSTALL_DIRECTORY, "conf")

DEFAULT_CONFIG_FILE = os.path.join(CONFIG_DIRECTORY, "apkm.json")
DEFAULT_LOG_FILE = os.path.join(DEFAULT_LOG_DIRECTORY, "apkm.txt")

# Key of the adb executable path in DEFAULT_CONFIG_FILE.
ADB_BIN_PATH_CONFIG = "adb_path"
ADB_RETRY_SLEEP = 10
DEFAULT_ADB_TIMEOUT = None  # Wait indefinitely for adb processes.

# Writable directory on the device used to stage packages before installation.
TEMP_INSTALLATION_DIRECTORY = "/data/local/tmp/"
# rw-r--r--
PACKAGE_FILE_MODE = 0o644
SYNC_CHUNK_SIZE = 64 * 1024
