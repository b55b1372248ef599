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
"""Extracts a TargetModel from the CMake File API.

The CMake File API works by writing empty query files into
`<build>/.cmake/api/v1/query`, running the cmake configure step, and reading
the JSON reply documents written to `<build>/.cmake/api/v1/reply`.

See https://cmake.org/cmake/help/latest/manual/cmake-file-api.7.html
"""

# pylint: disable=relative-beyond-top-level

import glob
import json
import logging
import os
import pathlib
import posixpath
import subprocess
from typing import Any, Dict, List, Mapping, NamedTuple, Optional

from .cmake_lists import configure_file_record
from .cmake_lists import tokenize_commands
from .cmake_target import CMakeTarget
from .cmake_target import ConfigureFileRecord
from .cmake_target import EXECUTABLE
from .cmake_target import LIBRARY
from .cmake_target import TargetKind
from .cmake_target import TargetModel
from .util import is_outside_source_tree
from .util import make_source_relative
from .variable_substitution import apply_variable_substitutions

_logger = logging.getLogger(__name__)

QUERY_KINDS = ("codemodel-v2", "cache-v2", "toolchains-v1")
CMAKE_FILES_QUERY_KIND = "cmakeFiles-v1"

_TARGET_KINDS: Dict[str, TargetKind] = {
    "STATIC_LIBRARY": LIBRARY,
    "SHARED_LIBRARY": LIBRARY,
    "MODULE_LIBRARY": LIBRARY,
    "OBJECT_LIBRARY": LIBRARY,
    "EXECUTABLE": EXECUTABLE,
}

Json = Dict[str, Any]


class FileApiError(RuntimeError):
  """The CMake File API could not produce a target model."""


class ReplyDocuments(NamedTuple):
  """The parsed reply documents of one configure step."""

  index: Json
  codemodel: Json
  # Target documents keyed by target id, in codemodel order.
  targets: Dict[str, Json]


def _api_dir(build_dir: str, kind: str) -> str:
  return os.path.join(build_dir, ".cmake", "api", "v1", kind)


def _load_json(path: str) -> Json:
  try:
    with open(path, "r", encoding="utf-8") as f:
      return json.load(f)
  except (OSError, ValueError) as e:
    raise FileApiError(f"Failed to load {path}: {e}") from e


def normalize_library_name(fragment: str) -> str:
  """Recovers a library name from a `lib<name>.a` or `lib<name>.so` path."""
  base = posixpath.basename(fragment.replace("\\", "/"))
  if base.startswith("lib"):
    for suffix in (".a", ".so"):
      if base.endswith(suffix) and len(base) > len(suffix) + 3:
        return base[3 : -len(suffix)]
  return fragment


def _link_library_names(target_doc: Json) -> List[str]:
  link = target_doc.get("link") or {}
  fragments = [x.get("fragment", "") for x in link.get("libraries", [])]
  fragments.extend(
      x.get("fragment", "")
      for x in link.get("commandFragments", [])
      if x.get("role") == "libraries"
  )
  names = []
  for fragment in fragments:
    fragment = fragment.strip()
    if not fragment or fragment.startswith("-"):
      continue
    names.append(normalize_library_name(fragment))
  return names


class CMakeFileApi:
  """Client for the CMake File API of a single source directory."""

  def __init__(
      self,
      source_dir: str,
      build_dir: str,
      cmake_executable: str = "cmake",
      cmake_defines: Optional[Mapping[str, str]] = None,
      query_cmake_files: bool = True,
  ):
    self.source_dir = source_dir
    self.build_dir = build_dir
    self.cmake_executable = cmake_executable
    self.cmake_defines: Dict[str, str] = dict(cmake_defines or {})
    self.query_cmake_files = query_cmake_files
    self._configured = False

  @property
  def query_dir(self) -> str:
    return _api_dir(self.build_dir, "query")

  @property
  def reply_dir(self) -> str:
    return _api_dir(self.build_dir, "reply")

  def create_query(self):
    """Writes the query files requesting the objects we read."""
    kinds = list(QUERY_KINDS)
    if self.query_cmake_files:
      kinds.append(CMAKE_FILES_QUERY_KIND)
    try:
      os.makedirs(self.query_dir, exist_ok=True)
      for kind in kinds:
        pathlib.Path(self.query_dir, kind).write_bytes(b"")
    except OSError as e:
      raise FileApiError(f"Failed to create query files: {e}") from e

  def configure_command(self) -> List[str]:
    cmd = [self.cmake_executable]
    for key in sorted(self.cmake_defines):
      cmd.append(f"-D{key}={self.cmake_defines[key]}")
    cmd.append(self.source_dir)
    return cmd

  def configure(self):
    """Runs the cmake configure step in the build directory."""
    cmd = self.configure_command()
    _logger.info("Running %s in %s", " ".join(cmd), self.build_dir)
    try:
      os.makedirs(self.build_dir, exist_ok=True)
      subprocess.run(
          cmd,
          cwd=self.build_dir,
          check=True,
          capture_output=True,
          text=True,
      )
    except subprocess.CalledProcessError as e:
      raise FileApiError(
          f"cmake configure failed with exit code {e.returncode}: {e.stderr}"
      ) from e
    except OSError as e:
      raise FileApiError(f"Failed to run {self.cmake_executable}: {e}") from e

  def ensure_configured(self):
    if self._configured:
      return
    self.create_query()
    self.configure()
    self._configured = True

  def _latest_reply_file(self, pattern: str) -> str:
    if not os.path.isdir(self.reply_dir):
      raise FileApiError(f"No reply directory {self.reply_dir}")
    # Reply file names embed a timestamp, so the last one is the newest.
    files = sorted(glob.glob(os.path.join(self.reply_dir, pattern)))
    if not files:
      raise FileApiError(f"No {pattern} files found in {self.reply_dir}")
    return files[-1]

  def read_reply(self) -> ReplyDocuments:
    """Reads the index, codemodel and target documents."""
    index = _load_json(self._latest_reply_file("index-*.json"))

    codemodel_file = None
    for obj in index.get("objects", []):
      if obj.get("kind") == "codemodel":
        codemodel_file = obj.get("jsonFile")
        break
    if not codemodel_file:
      raise FileApiError("No codemodel object found in the reply index")
    codemodel = _load_json(os.path.join(self.reply_dir, codemodel_file))

    targets: Dict[str, Json] = {}
    configurations = codemodel.get("configurations", [])
    if configurations:
      # Only the first configuration is used.
      for ref in configurations[0].get("targets", []):
        json_file = ref.get("jsonFile")
        if not json_file:
          raise FileApiError(f"Target {ref.get('name')} has no jsonFile")
        doc = _load_json(os.path.join(self.reply_dir, json_file))
        targets[doc.get("id", ref.get("id", json_file))] = doc
    return ReplyDocuments(index=index, codemodel=codemodel, targets=targets)

  def load_cache(self) -> Dict[str, str]:
    """Returns the cache variables written by the configure step.

    These are diagnostic only; they never feed configure_file() generation.
    """
    cache = _load_json(self._latest_reply_file("cache-*.json"))
    values = {
        entry["name"]: entry.get("value", "")
        for entry in cache.get("entries", [])
        if "name" in entry
    }
    _logger.info("Loaded %d cache variables from CMake", len(values))
    return values

  def _relative_path(self, path: str) -> Optional[str]:
    if not path:
      return None
    relative = make_source_relative(path, self.source_dir)
    if is_outside_source_tree(relative):
      return None
    return relative

  def _include_directories(self, target_doc: Json) -> List[str]:
    groups = target_doc.get("compileGroups") or []
    if not groups:
      return []
    result = []
    for include in groups[0].get("includes", []):
      if include.get("isSystem"):
        continue
      relative = self._relative_path(include.get("path", ""))
      if relative is not None:
        result.append(relative)
    return result

  def _convert_target(
      self, target_doc: Json, names_by_id: Dict[str, str]
  ) -> Optional[CMakeTarget]:
    name = target_doc.get("name", "")
    target_type = target_doc.get("type", "")
    if target_type == "UTILITY" or target_type.startswith("INTERFACE"):
      return None
    kind = _TARGET_KINDS.get(target_type)
    if kind is None:
      _logger.warning(
          "Unknown target type %s for target %s, skipping", target_type, name
      )
      return None

    target = CMakeTarget(name, kind)
    for source in target_doc.get("sources", []):
      relative = self._relative_path(source.get("path", ""))
      if relative is not None:
        target.add_files([relative])
    target.add_include_directories(self._include_directories(target_doc))
    target.add_linked_libraries(
        names_by_id[dep["id"]]
        for dep in target_doc.get("dependencies", [])
        if dep.get("id") in names_by_id
    )
    target.add_linked_libraries(_link_library_names(target_doc))
    return target

  def extract_targets(self) -> TargetModel:
    """Configures the project if needed and returns its targets."""
    self.ensure_configured()
    reply = self.read_reply()
    names_by_id = {
        target_id: doc.get("name", "")
        for target_id, doc in reply.targets.items()
    }
    model = TargetModel()
    for doc in reply.targets.values():
      target = self._convert_target(doc, names_by_id)
      if target is None:
        continue
      if target.name in model:
        _logger.warning("Duplicate target %s, skipping", target.name)
        continue
      model.targets[target.name] = target
    _logger.info(
        "Extracted %d targets from the CMake File API for %s",
        len(model),
        self.source_dir,
    )
    return model

  def detect_configure_files(self) -> List[ConfigureFileRecord]:
    """Finds configure_file() calls, which the File API does not report."""
    path = os.path.join(self.source_dir, "CMakeLists.txt")
    try:
      with open(path, "r", encoding="utf-8") as f:
        text = f.read()
    except (OSError, UnicodeDecodeError) as e:
      _logger.warning("Failed to read %s: %s", path, e)
      return []

    variables: Dict[str, str] = {}
    records = []
    for invocation in tokenize_commands(text):
      args = invocation.arguments
      if invocation.name == "set" and len(args) >= 2:
        variables[args[0]] = apply_variable_substitutions(args[1], variables)
      elif invocation.name == "configure_file" and len(args) >= 2:
        records.append(
            configure_file_record(
                args, variables, self.cmake_defines, self.source_dir
            )
        )
    return records

  def extract(self) -> TargetModel:
    """Returns the targets and configure_file() records of the project."""
    model = self.extract_targets()
    try:
      self.load_cache()
    except FileApiError as e:
      _logger.warning("Failed to load CMake cache: %s", e)
    for record in self.detect_configure_files():
      model.add_configure_file(record)
    return model
