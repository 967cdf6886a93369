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

"""Build the apk_manager Python package."""
import os
import re
from typing import List

import setuptools

_CURRENT_DIR = os.path.abspath(os.path.dirname(__file__))
_README_FILE = 'README.md'
_REQUIREMENTS_FILE = 'requirements.txt'
_SOURCE_CODE_DIR_NAME = 'apk_manager'
_VERSION_FILE = '_version.py'


def _get_readme() -> str:
  """Returns contents of README.md."""
  readme_file = os.path.join(_CURRENT_DIR, _README_FILE)
  with open(readme_file) as open_file:
    return open_file.read()


def _get_requirements() -> List[str]:
  """Returns package requirements from requirements.txt."""
  requirements_file = os.path.join(_CURRENT_DIR, _REQUIREMENTS_FILE)
  with open(requirements_file) as open_file:
    requirements = open_file.read()
    if requirements:
      return requirements.splitlines()
  raise RuntimeError('Unable to find package requirements in {}'.format(
      requirements_file))


def _get_version() -> str:
  """Returns version from version.py."""
  version_file = os.path.join(
      _CURRENT_DIR, _SOURCE_CODE_DIR_NAME, _VERSION_FILE)
  with open(version_file) as open_file:
    contents = open_file.read()
    version_match = re.search(r'^version = "(.*)"', contents, re.M)
    if version_match:
      return version_match.group(1)
  raise RuntimeError(f'Unable to find "version = <version>" in {version_file}')


setuptools.setup(
    name='apk_manager',
    version=_get_version(),
    description='Android package management over adb',
    long_description=_get_readme(),
    long_description_content_type='text/markdown',
    python_requires='>=3.7',
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: Apache Software License',
        'Operating System :: MacOS',
        'Operating System :: POSIX :: Linux',
        'Programming Language :: Python :: 3',
        'Topic :: Software Development :: Libraries :: Python Modules',
        'Topic :: Software Development :: Testing',
    ],

    license='Apache 2.0',

    # define list of packages included in distribution
    packages=setuptools.find_packages(
        include=['apk_manager', 'apk_manager.*'],
        exclude=['apk_manager.tests*']),

    # runtime dependencies that are installed by pip during install
    install_requires=_get_requirements(),
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': [
            'apkm=apk_manager.apkm_cli:main'
        ],
    })
