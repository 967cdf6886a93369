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

"""Module for the apk_manager logger.

All apk_manager modules log through the top-level "apk_manager" logger or one of
its component loggers ("apk_manager.<component>"). initialize_logger() sends
everything to a rotating log file and INFO messages to stdout.
"""
import atexit
import logging
import logging.handlers
import os
import sys
from typing import List

from apk_manager import config

# Making this global enables user control of stdout streaming (indirectly)
_stdout_handler = None

_LOGGER_NAME = 'apk_manager'

# Log formats for debug
FMT = ('%(asctime)s.%(msecs)03d %(levelname).1s %(process)5d '
       '%(filename)19.19s:%(lineno)d\t%(message)s')
DATEFMT = '%Y%m%d %X'


def add_handler(handler: logging.Handler) -> None:
  """Adds a logging handler to the apk_manager logger.

  Along with remove_handler, allows library users to configure extra
  destinations and formats for log messages emitted from within apk_manager.

  Args:
      handler: A logging handler.
  """
  get_logger().addHandler(handler)


def get_handlers() -> List[logging.Handler]:
  """Returns the list of active logging handlers."""
  return get_logger().handlers


def get_logger(component_name=None):
  """Returns a Logger that inherits from (or is) the top-level logger.

  The name given is appended to the name of the top-level logger (e.g.
  get_logger('adb') is equivalent to logging.getLogger('apk_manager.adb')).

  Args:
      component_name (str): name of a component. Nests using '.' char.

  Returns:
      logging.Logger: main logger or sub logger.
  """
  if component_name is not None:
    name = '.'.join([_LOGGER_NAME, component_name])
  else:
    name = _LOGGER_NAME

  return logging.getLogger(name)


def initialize_logger():
  """Configures the top-level apk_manager Logger.

  Configures it to begin logging to stdout and to the default log destination
  (config.DEFAULT_LOG_FILE).
  """
  logger = get_logger()
  logger.setLevel(logging.DEBUG)

  # Logging during interpreter shutdown can crash in some environments.
  atexit.register(logger.handlers.clear)

  dirname = os.path.dirname(config.DEFAULT_LOG_FILE)
  if not os.path.isdir(dirname):
    os.makedirs(dirname)

  # Configure a handler that writes to the logfile
  filepath = config.DEFAULT_LOG_FILE
  args = dict(mode='a', maxBytes=100 * 1024 * 1023, backupCount=5)
  logfile_handler = logging.handlers.RotatingFileHandler(filepath, **args)
  logfile_handler.setLevel(logging.DEBUG)
  logfile_formatter = logging.Formatter(FMT, datefmt=DATEFMT)
  logfile_handler.setFormatter(logfile_formatter)
  logger.addHandler(logfile_handler)

  # Configure a handler that writes INFO logs to stdout
  stdout_handler = logging.StreamHandler(sys.stdout)
  stdout_handler.setLevel(logging.INFO)
  stdout_formatter = logging.Formatter('%(message)s')
  stdout_handler.setFormatter(stdout_formatter)
  logger.addHandler(stdout_handler)

  # Keep global copy of stdout_handler created and added above to allow for
  # changing the log level later for that handler.
  global _stdout_handler
  _stdout_handler = stdout_handler


def reenable_progress_messages():
  """Reenables streaming apk_manager Logger messages to stdout."""
  if _stdout_handler and _stdout_handler not in get_handlers():
    add_handler(_stdout_handler)


def remove_handler(handler: logging.Handler) -> None:
  """Removes the given handler from the apk_manager Logger.

  Args:
      handler: A logging handler that was added earlier using add_handler.
  """
  get_logger().removeHandler(handler)


def silence_progress_messages():
  """Stops the default behavior of streaming Logger messages to stdout."""
  if _stdout_handler:
    remove_handler(_stdout_handler)


def stream_debug():
  """Sets the log level for stdout streaming to DEBUG."""
  if _stdout_handler:
    fmt = logging.Formatter(FMT, datefmt=DATEFMT)
    _stdout_handler.setFormatter(fmt)
    _stdout_handler.setLevel(logging.DEBUG)
