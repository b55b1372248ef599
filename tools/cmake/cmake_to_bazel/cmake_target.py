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
"""CMake target model types.

CMakeTarget: A library or executable declared by a CMakeLists.txt.
ConfigureFileRecord: A configure_file() request.
TargetModel: All targets and configure_file() requests of one directory.
"""

# pylint: disable=relative-beyond-top-level

import logging
import os
from typing import Dict, Iterable, Iterator, List, NamedTuple, NewType, Optional

from .util import append_if_missing
from .util import is_header_file
from .util import is_source_file

TargetKind = NewType("TargetKind", str)

LIBRARY = TargetKind("library")
EXECUTABLE = TargetKind("executable")

_logger = logging.getLogger(__name__)


class CMakeTarget:
  """A buildable unit declared by a CMake project."""

  __slots__ = (
      "name",
      "kind",
      "sources",
      "headers",
      "include_directories",
      "linked_libraries",
  )

  def __init__(self, name: str, kind: TargetKind):
    self.name = name
    self.kind = kind
    self.sources: List[str] = []
    self.headers: List[str] = []
    self.include_directories: List[str] = []
    self.linked_libraries: List[str] = []

  def __repr__(self):
    return (
        f"{self.__class__.__name__}({self.name!r}, {self.kind!r}, "
        f"sources={self.sources!r}, headers={self.headers!r}, "
        f"include_directories={self.include_directories!r}, "
        f"linked_libraries={self.linked_libraries!r})"
    )

  def add_files(self, files: Iterable[str]):
    """Adds files as sources or headers, dropping unrecognized tokens."""
    for f in files:
      if is_header_file(f):
        append_if_missing(self.headers, [f])
      elif is_source_file(f):
        append_if_missing(self.sources, [f])

  def add_include_directories(self, directories: Iterable[str]):
    append_if_missing(self.include_directories, directories)

  def add_linked_libraries(self, libraries: Iterable[str]):
    append_if_missing(self.linked_libraries, libraries)


class ConfigureFileRecord(NamedTuple):
  """A request to generate `output_file` from the `input_file` template."""

  input_file: str
  output_file: str
  variables: Dict[str, str]

  @property
  def rule_name(self) -> str:
    name = os.path.basename(self.output_file)
    name = name.replace(".", "_").replace("/", "_")
    return name or "config_file"

  @property
  def output_stem(self) -> str:
    return os.path.splitext(os.path.basename(self.output_file))[0]

  @property
  def output_is_header(self) -> bool:
    return is_header_file(self.output_file)


class TargetModel:
  """Targets and configure-file records extracted from one build script."""

  def __init__(self):
    self.targets: Dict[str, CMakeTarget] = {}
    self.configure_files: List[ConfigureFileRecord] = []

  def __contains__(self, name: str) -> bool:
    return name in self.targets

  def __len__(self) -> int:
    return len(self.targets)

  def __iter__(self) -> Iterator[CMakeTarget]:
    return iter(self.targets.values())

  def __repr__(self):
    return (
        f"{self.__class__.__name__}(targets={list(self.targets.values())!r}, "
        f"configure_files={self.configure_files!r})"
    )

  def get(self, name: str) -> Optional[CMakeTarget]:
    return self.targets.get(name)

  def declare(self, name: str, kind: TargetKind) -> CMakeTarget:
    """Returns the target `name`, creating it on first declaration.

    The kind of a target is fixed by its first declaration.
    """
    target = self.targets.get(name)
    if target is None:
      target = CMakeTarget(name, kind)
      self.targets[name] = target
    elif target.kind != kind:
      _logger.warning(
          "Target %s redeclared as %s; keeping kind %s",
          name,
          kind,
          target.kind,
      )
    return target

  def add_configure_file(self, record: ConfigureFileRecord):
    self.configure_files.append(record)

  def sorted_targets(self) -> List[CMakeTarget]:
    return [self.targets[k] for k in sorted(self.targets)]
