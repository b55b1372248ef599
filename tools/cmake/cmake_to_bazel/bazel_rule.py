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
"""Generated Bazel rules."""

# pylint: disable=missing-function-docstring,relative-beyond-top-level

from typing import Any, Dict, List, Optional

from .util import quote_list
from .util import quote_string

# Private attributes are passed from rule synthesis to dependency resolution
# and are never written to BUILD files.
LINKED_LIBRARIES_ATTR = "cmake_linked_libraries"
INCLUDE_DIRECTORIES_ATTR = "cmake_include_directories"
CONFIGURE_OUTPUT_ATTR = "cmake_configure_output"

CC_LIBRARY = "cc_library"
CC_BINARY = "cc_binary"
GENRULE = "genrule"
CMAKE_CONFIGURE_FILE = "cmake_configure_file"
CMAKE_INCLUDE_DIRECTORIES = "cmake_include_directories"

# The .bzl file providing the non-native rule kinds.
CMAKE_RULES_BZL = "//tools/cmake:defs.bzl"

LOADABLE_KINDS = frozenset([CMAKE_CONFIGURE_FILE, CMAKE_INCLUDE_DIRECTORIES])


class GeneratedRule:
  """A rule with public attributes and private metadata."""

  __slots__ = ("kind", "name", "attrs", "private_attrs")

  def __init__(self, kind: str, name: str):
    self.kind = kind
    self.name = name
    self.attrs: Dict[str, Any] = {}
    self.private_attrs: Dict[str, Any] = {}

  def __repr__(self):
    return (
        f"{self.__class__.__name__}({self.kind!r}, {self.name!r}, "
        f"{self.attrs!r})"
    )

  def set_attr(self, key: str, value: Any):
    self.attrs[key] = value

  def attr(self, key: str) -> Any:
    return self.attrs.get(key)

  def attr_strings(self, key: str) -> List[str]:
    value = self.attrs.get(key)
    if value is None:
      return []
    if isinstance(value, str):
      return [value]
    return list(value)

  def set_private_attr(self, key: str, value: Any):
    self.private_attrs[key] = value

  def private_attr(self, key: str, default: Optional[Any] = None) -> Any:
    return self.private_attrs.get(key, default)

  def as_text(self) -> str:
    """Returns the Starlark text of the rule."""
    lines = [f"{self.kind}(", f"    name = {quote_string(self.name)},"]
    for key, value in self.attrs.items():
      lines.append(f"    {key} = {_format_value(value)},")
    lines.append(")")
    return "\n".join(lines) + "\n"


def _format_value(value: Any) -> str:
  if isinstance(value, bool):
    return "True" if value else "False"
  if isinstance(value, str):
    return quote_string(value)
  if isinstance(value, int):
    return str(value)
  if isinstance(value, dict):
    if not value:
      return "{}"
    items = [
        f"        {quote_string(k)}: {quote_string(value[k])},"
        for k in sorted(value)
    ]
    return "{\n" + "\n".join(items) + "\n    }"
  value = list(value)
  if not value:
    return "[]"
  if len(value) == 1:
    return f"[{quote_list(value)}]"
  items = [f"        {quote_string(x)}," for x in value]
  return "[\n" + "\n".join(items) + "\n    ]"
