# Copyright 2022 The TensorStore Authors
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
"""setuptools script for installing the cmake_to_bazel package."""

import sys
if sys.version_info < (3, 8):
  print('Python >= 3.8 is required to build')
  sys.exit(1)

import setuptools

import atexit
import os
import tempfile

import setuptools.command.build
import setuptools.command.build_py
import setuptools.command.install
import setuptools.command.sdist


def _setup_temp_egg_info(cmd):
  """Use a temporary directory for the `.egg-info` directory.

  When building an sdist (source distribution) or installing, locate the
  `.egg-info` directory inside a temporary directory so that it
  doesn't litter the source directory and doesn't pick up a stale SOURCES.txt
  from a previous build.
  """
  egg_info_cmd = cmd.distribution.get_command_obj('egg_info')
  if egg_info_cmd.egg_base is None:
    tempdir = tempfile.TemporaryDirectory(dir=os.curdir)
    egg_info_cmd.egg_base = tempdir.name
    atexit.register(tempdir.cleanup)


class SdistCommand(setuptools.command.sdist.sdist):

  def run(self):
    _setup_temp_egg_info(self)
    super().run()

  def make_release_tree(self, base_dir, files):
    # Exclude .egg-info from source distribution.
    files = [x for x in files if '.egg-info' not in x]
    super().make_release_tree(base_dir, files)


class BuildCommand(setuptools.command.build.build):

  def finalize_options(self):
    if self.build_base == 'build':
      # Use temporary directory instead, to avoid littering the source directory
      # with a `build` sub-directory.
      tempdir = tempfile.TemporaryDirectory()
      self.build_base = tempdir.name
      atexit.register(tempdir.cleanup)
    super().finalize_options()


def _include_python_module(name):
  return not name.endswith('_test')


class BuildPyCommand(setuptools.command.build_py.build_py):
  """Overrides default build_py command to exclude test modules."""

  def find_package_modules(self, package, package_dir):
    modules = super().find_package_modules(package, package_dir)
    return [(pkg, mod, path)
            for (pkg, mod, path) in modules
            if _include_python_module('%s.%s' % (pkg, mod))]


class InstallCommand(setuptools.command.install.install):

  def run(self):
    _setup_temp_egg_info(self)
    super().run()


with open(os.path.join(os.path.dirname(__file__), 'README.md'), mode='r',
          encoding='utf-8') as f:
  long_description = f.read()

setuptools.setup(
    name='cmake_to_bazel',
    version='0.1.0',
    description='Generate Bazel BUILD files from CMake projects',
    long_description=long_description,
    long_description_content_type='text/markdown',
    author='The TensorStore Authors',
    license='Apache License 2.0',
    python_requires='>=3.8',
    packages=setuptools.find_packages('tools/cmake'),
    package_dir={'': 'tools/cmake'},
    cmdclass={
        'sdist': SdistCommand,
        'build': BuildCommand,
        'build_py': BuildPyCommand,
        'install': InstallCommand,
    },
    install_requires=[],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': [
            'cmake_to_bazel=cmake_to_bazel.main:main',
        ],
    },
)
