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
"""Best-effort extraction of targets from CMakeLists.txt text.

This is not a CMake interpreter.  A command is recognized as an identifier at
the start of a line followed by a parenthesized argument span, and arguments
are split on whitespace.  The following are known limitations:

  * quoted arguments containing whitespace are split,
  * semicolon-separated lists are not expanded,
  * bracket arguments and bracket comments are not recognized,
  * parentheses inside arguments (e.g. generator expressions) are kept as
    text,
  * control flow, functions and macros are ignored,
  * `${VAR}` only expands variables bound by an earlier `set()` in the same
    file.

Commands which do not have the expected shape are ignored.
"""

# pylint: disable=relative-beyond-top-level

import logging
import re
from typing import Dict, Iterator, List, Mapping, NamedTuple, Optional

from .cmake_target import ConfigureFileRecord
from .cmake_target import EXECUTABLE
from .cmake_target import LIBRARY
from .cmake_target import TargetModel
from .variable_substitution import apply_variable_substitutions
from .variable_substitution import resolve_configure_file_path

_logger = logging.getLogger(__name__)

_COMMAND_START_RE = re.compile(
    r"^[ \t]*([A-Za-z_][A-Za-z0-9_]*)[ \t]*\(", re.MULTILINE
)

_SCOPE_KEYWORDS = frozenset(["PRIVATE", "PUBLIC", "INTERFACE"])


class CommandInvocation(NamedTuple):
  """A command invocation; `name` is lowercase."""

  name: str
  arguments: List[str]
  line: int


def _strip_comments(text: str) -> str:
  lines = []
  for line in text.splitlines():
    in_quote = False
    escaped = False
    for i, c in enumerate(line):
      if escaped:
        escaped = False
      elif c == "\\":
        escaped = True
      elif c == '"':
        in_quote = not in_quote
      elif c == "#" and not in_quote:
        line = line[:i]
        break
    lines.append(line)
  return "\n".join(lines)


def _split_arguments(body: str) -> List[str]:
  args = []
  for token in body.split():
    token = token.strip('"')
    if token:
      args.append(token)
  return args


def tokenize_commands(text: str) -> Iterator[CommandInvocation]:
  """Yields the command invocations found in `text`."""
  text = _strip_comments(text)
  pos = 0
  while True:
    m = _COMMAND_START_RE.search(text, pos)
    if m is None:
      return
    start = m.end()
    depth = 1
    k = start
    while k < len(text):
      if text[k] == "(":
        depth += 1
      elif text[k] == ")":
        depth -= 1
        if depth == 0:
          break
      k += 1
    line = text.count("\n", 0, m.start()) + 1
    if depth != 0:
      _logger.debug("Unterminated %s( at line %d", m.group(1), line)
      pos = start
      continue
    yield CommandInvocation(
        name=m.group(1).lower(),
        arguments=_split_arguments(text[start:k]),
        line=line,
    )
    pos = k + 1


def configure_file_record(
    arguments: List[str],
    variables: Mapping[str, str],
    cmake_defines: Mapping[str, str],
    source_dir: Optional[str] = None,
) -> ConfigureFileRecord:
  """Returns the record of a `configure_file(input output ...)` invocation.

  `${VAR}` references in the paths take user defines over `set()` bindings.
  The record variables are the user defines only.
  """
  substitutions = dict(variables)
  substitutions.update(cmake_defines)
  return ConfigureFileRecord(
      input_file=resolve_configure_file_path(
          arguments[0], substitutions, source_dir
      ),
      output_file=resolve_configure_file_path(
          arguments[1], substitutions, source_dir
      ),
      variables=dict(cmake_defines),
  )


class _CMakeListsParser:
  """Applies recognized commands to a TargetModel."""

  def __init__(self, cmake_defines: Mapping[str, str]):
    self.model = TargetModel()
    self.variables: Dict[str, str] = {}
    self.cmake_defines = dict(cmake_defines)
    self._handlers = {
        "add_library": self._add_library,
        "add_executable": self._add_executable,
        "target_sources": self._target_sources,
        "target_include_directories": self._target_include_directories,
        "target_link_libraries": self._target_link_libraries,
        "set": self._set,
        "configure_file": self._configure_file,
    }

  def parse(self, text: str) -> TargetModel:
    for invocation in tokenize_commands(text):
      handler = self._handlers.get(invocation.name)
      if handler is None:
        continue
      args = [
          apply_variable_substitutions(a, self.variables)
          for a in invocation.arguments
      ]
      handler(invocation, args)
    return self.model

  def _add_library(self, invocation: CommandInvocation, args: List[str]):
    if len(args) < 2:
      _logger.debug("Ignoring add_library at line %d", invocation.line)
      return
    self.model.declare(args[0], LIBRARY).add_files(args[1:])

  def _add_executable(self, invocation: CommandInvocation, args: List[str]):
    if len(args) < 2:
      _logger.debug("Ignoring add_executable at line %d", invocation.line)
      return
    self.model.declare(args[0], EXECUTABLE).add_files(args[1:])

  def _existing_target(self, invocation: CommandInvocation, args: List[str]):
    target = self.model.get(args[0])
    if target is None:
      _logger.debug(
          "Ignoring %s for unknown target %s at line %d",
          invocation.name,
          args[0],
          invocation.line,
      )
    return target

  def _target_sources(self, invocation: CommandInvocation, args: List[str]):
    if len(args) < 3:
      return
    target = self._existing_target(invocation, args)
    if target is not None:
      target.add_files(args[2:])

  def _target_include_directories(
      self, invocation: CommandInvocation, args: List[str]
  ):
    if len(args) < 3:
      return
    target = self._existing_target(invocation, args)
    if target is not None:
      target.add_include_directories(args[2:])

  def _target_link_libraries(
      self, invocation: CommandInvocation, args: List[str]
  ):
    if len(args) < 2:
      return
    target = self._existing_target(invocation, args)
    if target is None:
      return
    start = 1
    if len(args) >= 3 and args[1].upper() in _SCOPE_KEYWORDS:
      start = 2
    target.add_linked_libraries(args[start:])

  def _set(self, invocation: CommandInvocation, args: List[str]):
    del invocation
    if len(args) < 2:
      return
    self.variables[args[0]] = args[1]

  def _configure_file(self, invocation: CommandInvocation, args: List[str]):
    if len(args) < 2:
      _logger.debug("Ignoring configure_file at line %d", invocation.line)
      return
    # The unsubstituted arguments, so that user defines take precedence.
    self.model.add_configure_file(
        configure_file_record(
            invocation.arguments, self.variables, self.cmake_defines
        )
    )


def parse_cmake_lists_text(
    text: str, cmake_defines: Optional[Mapping[str, str]] = None
) -> TargetModel:
  """Extracts targets and configure_file() records from CMakeLists.txt text.

  Args:
    text: Contents of a CMakeLists.txt file.
    cmake_defines: User-supplied variable values for configure_file().

  Returns:
    The extracted TargetModel.
  """
  return _CMakeListsParser(cmake_defines or {}).parse(text)


def parse_cmake_lists(
    path: str, cmake_defines: Optional[Mapping[str, str]] = None
) -> TargetModel:
  """Extracts the TargetModel of a CMakeLists.txt file.

  An unreadable file yields an empty model.
  """
  try:
    with open(path, "r", encoding="utf-8") as f:
      text = f.read()
  except (OSError, UnicodeDecodeError) as e:
    _logger.warning("Failed to read %s: %s", path, e)
    return TargetModel()
  return parse_cmake_lists_text(text, cmake_defines)
