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
"""Per-package configuration read from `# gazelle:` directives.

Supported directives:

  # gazelle:cmake_executable /path/to/cmake
  # gazelle:cmake_source @libzmq//:srcs
  # gazelle:cmake_define KEY VALUE

A package inherits the executable and defines of its parent; `cmake_source`
applies only to the package which declares it.
"""

# pylint: disable=relative-beyond-top-level

import logging
import re
from typing import Dict, Iterable, List, Mapping, NamedTuple, Optional, Tuple

from .label import parse_absolute_target

CMAKE_EXECUTABLE_DIRECTIVE = "cmake_executable"
CMAKE_SOURCE_DIRECTIVE = "cmake_source"
CMAKE_DEFINE_DIRECTIVE = "cmake_define"

KNOWN_DIRECTIVES = (
    CMAKE_EXECUTABLE_DIRECTIVE,
    CMAKE_SOURCE_DIRECTIVE,
    CMAKE_DEFINE_DIRECTIVE,
)

# How configure_file() outputs are generated.
CONFIGURE_MODE_CMAKE = "cmake"
CONFIGURE_MODE_GENRULE = "genrule"

_DIRECTIVE_RE = re.compile(r"^\s*#\s*gazelle:(\w+)(?:\s+(.*?))?\s*$")

_logger = logging.getLogger(__name__)


class Directive(NamedTuple):
  key: str
  value: str


def read_directives(text: str) -> List[Directive]:
  """Returns the cmake `# gazelle:key value` directives in BUILD file text.

  Directives of other extensions, such as `# gazelle:exclude`, are skipped.
  """
  result = []
  for line in text.splitlines():
    m = _DIRECTIVE_RE.match(line)
    if m and m.group(1) in KNOWN_DIRECTIVES:
      result.append(Directive(m.group(1), m.group(2) or ""))
  return result


def parse_define_directive(value: str) -> Optional[Tuple[str, str]]:
  """Parses `KEY VALUE`; returns None unless there are exactly two fields."""
  parts = value.split()
  if len(parts) != 2:
    return None
  return (parts[0], parts[1])


def repository_of_source(cmake_source: Optional[str]) -> Optional[str]:
  """Returns `repo` for a `@repo//...` source label, otherwise None."""
  if not cmake_source or not cmake_source.startswith("@"):
    return None
  return parse_absolute_target(cmake_source).repository_name or None


class CMakeConfig(NamedTuple):
  """Configuration for generating the rules of one package."""

  cmake_executable: str = "cmake"
  cmake_defines: Mapping[str, str] = {}
  cmake_source: Optional[str] = None
  use_file_api: bool = False
  configure_mode: str = CONFIGURE_MODE_CMAKE
  cmake_binary_label: str = "//:cmake"

  @property
  def external_repository(self) -> Optional[str]:
    return repository_of_source(self.cmake_source)

  def with_directives(
      self, directives: Iterable[Directive], rel: str = ""
  ) -> "CMakeConfig":
    """Returns the configuration of a package with `directives`.

    The receiver is not modified.  Malformed directives are logged and
    ignored.
    """
    cmake_executable = self.cmake_executable
    cmake_defines: Dict[str, str] = dict(self.cmake_defines)
    cmake_source = None
    for d in directives:
      if d.key == CMAKE_EXECUTABLE_DIRECTIVE:
        if not d.value:
          _logger.warning("Empty %s directive in %r", d.key, rel)
          continue
        cmake_executable = d.value
      elif d.key == CMAKE_SOURCE_DIRECTIVE:
        try:
          repository_of_source(d.value)
        except ValueError as e:
          _logger.warning("Invalid %s directive in %r: %s", d.key, rel, e)
          continue
        cmake_source = d.value or None
      elif d.key == CMAKE_DEFINE_DIRECTIVE:
        define = parse_define_directive(d.value)
        if define is None:
          _logger.warning(
              "Invalid %s directive %r in %r. Expected format: 'KEY VALUE'",
              d.key,
              d.value,
              rel,
          )
          continue
        cmake_defines[define[0]] = define[1]
    return self._replace(
        cmake_executable=cmake_executable,
        cmake_defines=cmake_defines,
        cmake_source=cmake_source,
    )
