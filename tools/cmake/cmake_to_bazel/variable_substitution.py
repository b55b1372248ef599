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
"""Implements ${VAR} substitution for CMake arguments and paths."""

# pylint: disable=relative-beyond-top-level

from collections.abc import Callable
import pathlib
from typing import Mapping, Optional

from .util import is_relative_to

# Directory, relative to the source directory, standing in for
# CMAKE_CURRENT_BINARY_DIR in generated paths.
BUILD_OUTPUT_DIR = ".cmake-build"


def _do_variable_replacement(
    text: str, get_replacement: Callable[[str], str]
) -> str:
  """Applies variable replacement to a string.

  References may nest, as in `${A_${B}}`; the innermost reference is replaced
  first.  An unterminated reference is left as-is.
  """
  result = []
  while True:
    i = text.find("${")
    if i == -1:
      result.append(text)
      break

    # Find matching close, counting the nested references.
    k = i + 2
    count = 1
    while k < len(text):
      if text.startswith("${", k):
        count += 1
        k += 2
        continue
      if text[k] == "}":
        count -= 1
        if count == 0:
          break
      k += 1
    if count != 0:
      result.append(text)
      break

    name = _do_variable_replacement(text[i + 2 : k], get_replacement)
    result.append(text[:i])
    result.append(get_replacement(name))
    text = text[k + 1 :]
  return "".join(result)


def apply_variable_substitutions(
    text: str, variables: Mapping[str, str]
) -> str:
  """Replaces `${NAME}` references with values from `variables`.

  Unknown variables are left unexpanded.
  """
  if "${" not in text:
    return text

  def _get_replacement(name: str) -> str:
    value = variables.get(name)
    if value is None:
      return "${" + name + "}"
    return value

  return _do_variable_replacement(text, _get_replacement)


def resolve_configure_file_path(
    path: str,
    variables: Mapping[str, str],
    source_dir: Optional[str] = None,
) -> str:
  """Resolves a configure_file() argument to a source-relative path.

  CMAKE_CURRENT_SOURCE_DIR and CMAKE_CURRENT_BINARY_DIR are substituted before
  `variables`.

  Args:
    path: The configure_file() argument.
    variables: Variables available for substitution.
    source_dir: When set, absolute paths below it are made relative.

  Returns:
    The resolved path.
  """
  path = path.replace("${CMAKE_CURRENT_SOURCE_DIR}/", "")
  path = path.replace("${CMAKE_CURRENT_SOURCE_DIR}", "")
  path = path.replace("${CMAKE_CURRENT_BINARY_DIR}", BUILD_OUTPUT_DIR)
  path = apply_variable_substitutions(path, variables)

  if source_dir:
    p = pathlib.PurePath(path)
    root = pathlib.PurePath(source_dir)
    if p.is_absolute() and is_relative_to(p, root):
      path = p.relative_to(root).as_posix()

  if path.startswith("./"):
    path = path[2:]
  return path.lstrip("/")
