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
"""Generates the rules of one directory."""

# pylint: disable=relative-beyond-top-level

import logging
import os
from typing import Collection, List, NamedTuple, Optional

from .bazel_rule import GeneratedRule
from .cmake_target import TargetModel
from .config import CMakeConfig
from .emit_cc import synthesize_rules
from .extraction import CMakeListsExtractor
from .extraction import FileApiExtractor
from .extraction import TargetModelExtractor
from .file_api import FileApiError

_logger = logging.getLogger(__name__)

CMAKE_LISTS = "CMakeLists.txt"


class GenerateArgs(NamedTuple):
  """Inputs for generating the rules of one directory.

  Attributes:
    directory: Absolute path of the directory.
    rel: Path of the directory relative to the repository root; also the
      package name.
    regular_files: Non-generated files in the directory.
    config: Configuration of the package.
    repo_root: Root directory of the repository.
  """

  directory: str
  rel: str
  regular_files: Collection[str]
  config: CMakeConfig
  repo_root: str = ""


def external_source_directory(repo_root: str, repository: str) -> str:
  """Returns where Bazel places the sources of an external repository."""
  return os.path.join(
      repo_root,
      "bazel-" + os.path.basename(os.path.normpath(repo_root)),
      "external",
      repository,
  )


def choose_extractor(config: CMakeConfig) -> TargetModelExtractor:
  if config.use_file_api:
    return FileApiExtractor(
        cmake_executable=config.cmake_executable,
        cmake_defines=config.cmake_defines,
    )
  return CMakeListsExtractor(config.cmake_defines)


def extract_model(
    source_dir: str,
    config: CMakeConfig,
    extractor: Optional[TargetModelExtractor] = None,
    fallback: bool = True,
) -> TargetModel:
  """Extracts the TargetModel of `source_dir`.

  Args:
    source_dir: Directory containing CMakeLists.txt.
    config: Configuration of the package.
    extractor: The extractor to use; chosen from `config` when None.
    fallback: Whether a failing File API extraction falls back to reading
      CMakeLists.txt directly.  When False, FileApiError propagates.

  Returns:
    The extracted TargetModel.
  """
  if extractor is None:
    extractor = choose_extractor(config)
  try:
    return extractor.extract(source_dir)
  except FileApiError as e:
    if not fallback:
      raise
    _logger.warning(
        "CMake File API failed for %s, reading CMakeLists.txt instead: %s",
        source_dir,
        e,
    )
  return CMakeListsExtractor(config.cmake_defines).extract(source_dir)


def source_directory(args: GenerateArgs) -> str:
  """Returns the directory whose CMakeLists.txt describes `args`.

  With a `cmake_source` directive naming an external repository, this is the
  repository's source tree when it has been fetched.
  """
  repository = args.config.external_repository
  if repository and args.repo_root:
    external = external_source_directory(args.repo_root, repository)
    if os.path.isdir(external):
      return external
    _logger.warning(
        "Sources of @%s not found at %s; has it been fetched?",
        repository,
        external,
    )
  return args.directory


def generate_rules(
    args: GenerateArgs,
    extractor: Optional[TargetModelExtractor] = None,
    fallback: bool = True,
) -> List[GeneratedRule]:
  """Returns the rules for one directory.

  A directory without a CMakeLists.txt contributes no rules.
  """
  source_dir = source_directory(args)
  if not os.path.isfile(os.path.join(source_dir, CMAKE_LISTS)):
    _logger.debug("No %s in %r, skipping", CMAKE_LISTS, args.rel)
    return []

  model = extract_model(source_dir, args.config, extractor, fallback)
  _logger.info(
      "Found %d targets and %d configured files in %r",
      len(model),
      len(model.configure_files),
      args.rel,
  )
  return synthesize_rules(
      model, args.regular_files, args.config, package=args.rel
  )
