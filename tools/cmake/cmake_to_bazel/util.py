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
"""Miscellaneous utility functions."""

import json
import os
import pathlib
from typing import Iterable, List, Optional, TypeVar, Union

PathLike = Union[str, pathlib.PurePath]

T = TypeVar("T")

HEADER_EXTENSIONS = frozenset([".h", ".hh", ".hpp", ".hxx"])
SOURCE_EXTENSIONS = frozenset([".c", ".cc", ".cpp", ".cxx"])


def _extension(path: str) -> str:
  return os.path.splitext(path)[1].lower()


def is_header_file(path: str) -> bool:
  return _extension(path) in HEADER_EXTENSIONS


def is_source_file(path: str) -> bool:
  return _extension(path) in SOURCE_EXTENSIONS


def quote_string(x: str) -> str:
  """Quotes a string for Starlark."""
  assert not isinstance(x, pathlib.PurePath)
  return json.dumps(x)


def quote_list(y: Iterable[str], separator: str = ", ") -> str:
  return separator.join(quote_string(x) for x in y)


def uniqueify(x: Iterable[T]) -> List[T]:
  """Returns the items of `x` with duplicates removed, in first-seen order."""
  seen = set()
  result = []
  for item in x:
    if item in seen:
      continue
    seen.add(item)
    result.append(item)
  return result


def append_if_missing(target: List[T], items: Iterable[T]):
  for item in items:
    if item not in target:
      target.append(item)


# Unfortunately, pathlib.PurePath.is_relative_to is a python3.9 invention.
def is_relative_to(
    leaf: pathlib.PurePath, root: pathlib.PurePath, _use_attr: bool = True
) -> bool:
  """Return True if the path is relative to another path or False."""
  if _use_attr and hasattr(leaf, "is_relative_to"):
    return leaf.is_relative_to(root)
  other = type(leaf)(root)
  return other == leaf or other in leaf.parents


def make_source_relative(path: PathLike, source_dir: PathLike) -> str:
  """Returns `path` relative to `source_dir`, as a posix string.

  Relative paths are assumed to already be relative to `source_dir`.  Paths
  outside of `source_dir` are returned with a leading `..` component, which
  callers use to discard them.
  """
  p = pathlib.PurePath(path)
  if not p.is_absolute():
    return pathlib.PurePosixPath(p.as_posix()).as_posix()
  root = pathlib.PurePath(source_dir)
  if is_relative_to(p, root):
    return p.relative_to(root).as_posix()
  return pathlib.PurePath(os.path.relpath(str(p), str(root))).as_posix()


def is_outside_source_tree(relative_path: str) -> bool:
  return relative_path == ".." or relative_path.startswith("../")


def join_package_path(package: str, path: str) -> str:
  if not package or package == ".":
    return path
  return f"{package}/{path}"


def write_file_if_not_already_equal(path: pathlib.PurePath, content: bytes):
  """Ensures `path` contains `content`.

  Does not update the modification time of `path` if it already contains
  `content`, to avoid unnecessary rebuilding.

  Args:
    path: Path to file.
    content: Content to write.
  """
  try:
    if pathlib.Path(path).read_bytes() == content:
      return
  except FileNotFoundError:
    pass
  os.makedirs(pathlib.PurePath(path).parent, exist_ok=True)
  pathlib.Path(path).write_bytes(content)


def read_text_if_exists(path: PathLike) -> Optional[str]:
  try:
    return pathlib.Path(path).read_text(encoding="utf-8")
  except FileNotFoundError:
    return None
