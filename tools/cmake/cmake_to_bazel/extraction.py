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
"""Strategies producing the TargetModel of a CMake source directory."""

# pylint: disable=relative-beyond-top-level

import os
from typing import Mapping, Optional

from .cmake_lists import parse_cmake_lists
from .cmake_target import TargetModel
from .file_api import CMakeFileApi
from .variable_substitution import BUILD_OUTPUT_DIR


class TargetModelExtractor(object):
  """Produces the TargetModel of a directory containing a CMakeLists.txt."""

  def __repr__(self):
    return f"<{self.__class__.__name__}>: {self.__dict__}"

  def extract(self, source_dir: str) -> TargetModel:
    raise NotImplementedError("extract")


class CMakeListsExtractor(TargetModelExtractor):
  """Reads CMakeLists.txt text directly; see `cmake_lists` for limitations."""

  def __init__(self, cmake_defines: Optional[Mapping[str, str]] = None):
    self.cmake_defines = dict(cmake_defines or {})

  def extract(self, source_dir: str) -> TargetModel:
    return parse_cmake_lists(
        os.path.join(source_dir, "CMakeLists.txt"), self.cmake_defines
    )


class FileApiExtractor(TargetModelExtractor):
  """Configures the project with cmake and reads the File API reply.

  Raises `FileApiError` when the project cannot be configured or the reply
  cannot be read.
  """

  def __init__(
      self,
      cmake_executable: str = "cmake",
      cmake_defines: Optional[Mapping[str, str]] = None,
      build_dir: Optional[str] = None,
  ):
    self.cmake_executable = cmake_executable
    self.cmake_defines = dict(cmake_defines or {})
    self.build_dir = build_dir

  def extract(self, source_dir: str) -> TargetModel:
    build_dir = self.build_dir or os.path.join(source_dir, BUILD_OUTPUT_DIR)
    api = CMakeFileApi(
        source_dir,
        build_dir,
        cmake_executable=self.cmake_executable,
        cmake_defines=self.cmake_defines,
    )
    return api.extract()
