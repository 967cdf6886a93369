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

"""Decorators used by package operations.

Usage examples:

Logging a public operation:

@decorators.LogDecorator(logger)
def uninstall_package(self, package_name):
  ...

Marking a property that queries the device:

@decorators.DynamicProperty
def packages(self):
  ...
"""
import functools
import inspect
import logging
import time
from typing import Any, Callable, Mapping, Optional, Sequence

from apk_manager import errors

# Enable specifying logger levels by decorators.<LEVEL> (so users don't have to
# import logging)
NONE = None
DEBUG = logging.DEBUG
INFO = logging.INFO
WARNING = logging.WARNING

MESSAGES = {
    "START":
        "{device_name} starting {class_name}.{method_name}{args_and_kwargs}",
    "SUCCESS":
        "{device_name} {class_name}.{method_name} successful. It took "
        "{time_elapsed}s.",
    "FAILURE":
        "{device_name} {class_name}.{method_name} failed. {exc_name}: "
        "{exc_reason}"
}

DEFAULT_DEVICE_NAME = "Unknown_device"
# This attribute is added to decorated methods.
LOG_DECORATOR_ATTRIBUTE = "_log_decorator"
_MAX_ARG_REPR_LENGTH_DEBUG = 1500
_MAX_ARG_REPR_LENGTH_INFO = 500


def unwrap(func):
  """Get the original function object of a wrapper function.

  Noop (returns func) if func is not decorated with decorator.

  Args:
      func (function): method, or property decorated with decorator

  Returns:
      function: the original function object (prior to decoration).
  """
  while hasattr(func, "__wrapped__"):
    func = func.__wrapped__
  return func


def _arg_to_str(arg: Any, max_length: int) -> str:
  """Converts the argument to a string with max_length for logging."""
  try:
    arg_str = repr(arg)
  except Exception:  # pylint: disable=broad-except
    arg_str = "<No description>"
  return arg_str[:max_length] + "..." if len(arg_str) > max_length else arg_str


def _get_args_and_kwargs_str(print_args: bool,
                             log_level: Optional[int],
                             method_signature: inspect.Signature,
                             method_args: Sequence[Any],
                             method_kwargs: Mapping[str, Any]) -> str:
  """Returns formatted method arguments and keyword arguments."""
  if not print_args:
    return ""

  if log_level is not None and log_level >= logging.INFO:
    max_arg_length = _MAX_ARG_REPR_LENGTH_INFO  # Keep CLI stdout logs short.
  else:
    max_arg_length = _MAX_ARG_REPR_LENGTH_DEBUG
  arg_names = [arg_name for arg_name in method_signature.parameters
               if arg_name not in ["cls", "self"]]
  args_str = ", ".join(
      f"{arg_name}={_arg_to_str(arg_value, max_arg_length)}"
      for arg_name, arg_value in zip(arg_names, method_args))
  kwargs_str = ", ".join(
      f"{arg_name}={_arg_to_str(arg_value, max_arg_length)}"
      for arg_name, arg_value in method_kwargs.items())
  args_and_kwargs_str = ", ".join(
      args_or_kwargs_str for args_or_kwargs_str in (args_str, kwargs_str)
      if args_or_kwargs_str)
  return f"({args_and_kwargs_str})"


class LogDecorator:
  """Wraps public operations with standard logger messages.

  Errors which are already DeviceErrors (or wrap_type) are re-raised unchanged.
  Any other exception is wrapped in wrap_type, chained from the original.

  Example logs for a successful method call:
      emulator-5554 starting PackageManager.uninstall_package(
          package_name='com.example.app')
      emulator-5554 PackageManager.uninstall_package successful. It took 0s.

  Example error message for a wrapped failure:
      emulator-5554 PackageManager.get_version_info failed. KeyError: 'x'
  """

  def __init__(self,
               logger,
               level=INFO,
               wrap_type=errors.DeviceError,
               name_attr="device_name",
               print_args=True):
    """Create a log decorator wrapper.

    Args:
        logger (logger): logger to use to print messages.
        level (int or None): logging level (decorators.INFO, decorators.DEBUG,
          decorators.NONE). NONE disables logging messages (but errors are
          still wrapped).
        wrap_type (DeviceError): wrap the errors in this class if it's not
          an instance of DeviceError already.
        name_attr (str): name of attribute containing the device name.
        print_args (bool): whether to include values of method args and kwargs
          in the method start log message.
    """
    self.logger = logger
    self.level = level
    self.wrap_type = wrap_type
    self.name_attr = name_attr
    self.print_args = print_args

  def __call__(self, func):
    """Wraps (decorates) the provided function.

    Args:
        func (function): function to be decorated

    Returns:
        function: a wrapper function (decorated input function)

    Raises:
        TypeError: incorrect type of func argument.
    """
    # At decoration time the method is still a plain function; the class does
    # not exist yet, so inspect.ismethod() can't be used here.
    if not callable(func):
      raise TypeError("Expected func to be callable, found {}.".format(func))

    error_template = (
        "Expected {} to be an instance method. "
        "Decorating {} methods is not supported; remove the decorator.")
    func_args = inspect.getfullargspec(func).args

    if func_args and func_args[0] == "cls":
      raise TypeError(error_template.format(func, "class"))
    if not func_args or func_args[0] != "self":
      raise TypeError(error_template.format(func, "static"))

    @functools.wraps(func)
    def wrapped_func(instance, *args, **kwargs):
      """Wraps (decorates) the given function.

      Args:
          instance (object): class instance
          *args (tuple): positional arguments to the wrapped function
          **kwargs (dict): keyword arguments to the wrapped function

      Returns:
          object: same value as the wrapped function.
      """
      fmt_args = {
          "device_name": getattr(instance, self.name_attr, DEFAULT_DEVICE_NAME),
          "method_name": func.__name__,
          "class_name": self._find_defining_class_name(func, type(instance)),
          "args_and_kwargs": _get_args_and_kwargs_str(
              self.print_args, self.level,
              inspect.signature(func), args, kwargs),
          "time_elapsed": None,
          "exc_name": None,
          "exc_reason": None,
      }

      start_time = time.time()

      if self.level is not None:
        self.logger.log(self.level, MESSAGES["START"].format(**fmt_args))

      try:
        return_val = func(instance, *args, **kwargs)
      except Exception as err:
        if (not isinstance(err, errors.DeviceError) and
            not isinstance(err, self.wrap_type)):
          # Wrap the error in a different type and reraise.
          fmt_args["exc_name"] = type(err).__name__
          fmt_args["exc_reason"] = str(err)
          reraise_msg = MESSAGES["FAILURE"].format(**fmt_args)
          wrapped_exc = self.wrap_type(reraise_msg)
          raise wrapped_exc from err
        raise

      if self.level is not None:
        fmt_args["time_elapsed"] = int(time.time() - start_time)
        self.logger.log(self.level, MESSAGES["SUCCESS"].format(**fmt_args))

      return return_val

    wrapped_func.__dict__[LOG_DECORATOR_ATTRIBUTE] = True
    return wrapped_func

  def _find_defining_class_name(self, method, current_class):
    """Finds the name of the class from which the method was inherited from.

    Args:
        method (func): method object.
        current_class (type): class to start the search from.

    Returns:
        str: name of the class defining the given method.
        None: defining class wasn't found in the class hierarchy.
    """
    for a_class in current_class.__mro__:
      a_class_method = vars(a_class).get(method.__name__)
      if a_class_method and unwrap(a_class_method) is method:
        return a_class.__name__
    return None


class DynamicProperty(property):
  """A property whose value reflects device state which may change.

  These properties may be settable if there is a corresponding setter property
  function.
  """
  # Make pytype aware of the "setter" attribute.
  setter: Callable[[Callable[[Any, Any], None]], None]

  def __init__(self, fget, fset=None, fdel=None, doc=None):
    if not doc:
      doc = fget.__doc__
    super().__init__(fget, fset=fset, fdel=fdel, doc=doc)
    # The class docstring shadows the property doc slot on older Pythons.
    self.__doc__ = doc
    self.name = fget.__name__
