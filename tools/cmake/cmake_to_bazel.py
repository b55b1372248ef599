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
"""Generates Bazel BUILD files from CMake projects.

Every directory containing a `CMakeLists.txt` gets a `BUILD.bazel` file with
one `cc_library` or `cc_binary` per CMake library or executable target,
rules generating `configure_file()` outputs, and rules exposing shared include
directories.

Targets are read either from the CMake File API, by configuring the project
with cmake (`--use-file-api`), or by scanning `CMakeLists.txt` text directly.
The text scanner understands only a handful of commands and no control flow;
it is also used when the File API fails, unless `--no-fallback` is given.

Dependencies are resolved across the whole tree once all rules are known,
from `target_link_libraries()` names and `#include` lines.

Packages are configured with directives in existing BUILD files:

  # gazelle:cmake_executable /path/to/cmake
  # gazelle:cmake_source @repo//:srcs
  # gazelle:cmake_define KEY VALUE

Generated content is kept between marker comments; the rest of an existing
BUILD file is left as it is.
"""

import sys

import cmake_to_bazel.main

if __name__ == "__main__":
  sys.exit(cmake_to_bazel.main.main())
