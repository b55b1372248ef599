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
"""Main entry point for cmake_to_bazel."""

# pylint: disable=relative-beyond-top-level

import argparse
import logging
import os
import pathlib
import posixpath
import sys
from typing import Dict, List, Optional, Tuple

from .bazel_rule import CC_BINARY
from .bazel_rule import CC_LIBRARY
from .bazel_rule import GeneratedRule
from .build_file_builder import BuildFileBuilder
from .config import CMakeConfig
from .config import CONFIGURE_MODE_CMAKE
from .config import CONFIGURE_MODE_GENRULE
from .config import read_directives
from .file_api import CMakeFileApi
from .file_api import FileApiError
from .generate import generate_rules
from .generate import GenerateArgs
from .label import PackageId
from .resolve import resolve_deps
from .resolve import RuleIndex
from .resolve import with_resolved_deps
from .util import read_text_if_exists
from .util import write_file_if_not_already_equal
from .variable_substitution import BUILD_OUTPUT_DIR

_logger = logging.getLogger(__name__)

BUILD_FILE_NAMES = ("BUILD.bazel", "BUILD")


class Package:
  """Generated rules and configuration of one directory.

  `build_file` is the existing BUILD file, if any, and `build_text` its
  contents.
  """

  def __init__(
      self,
      rel: str,
      directory: str,
      config: CMakeConfig,
      build_file: Optional[str] = None,
      build_text: str = "",
  ):
    self.rel = rel
    self.directory = directory
    self.config = config
    self.build_file = build_file
    self.build_text = build_text
    self.rules: List[GeneratedRule] = []

  @property
  def package_id(self) -> PackageId:
    return PackageId("", self.rel)


def _parse_defines(ap: argparse.ArgumentParser, defines: List[str]):
  result = {}
  for define in defines:
    key, sep, value = define.partition("=")
    if not sep or not key:
      ap.error(f"--define must have the form KEY=VALUE: {define!r}")
    result[key] = value
  return result


def _read_build_file(directory: str) -> Tuple[Optional[str], str]:
  """Returns the path and text of the BUILD file in `directory`, if any."""
  for name in BUILD_FILE_NAMES:
    path = os.path.join(directory, name)
    text = read_text_if_exists(path)
    if text is not None:
      return path, text
  return None, ""


def _skip_directory(name: str, excludes: List[str]) -> bool:
  return name.startswith(".") or name.startswith("bazel-") or name in excludes


def collect_packages(
    repo_root: str,
    root_config: CMakeConfig,
    excludes: List[str],
    fallback: bool = True,
) -> List[Package]:
  """Walks `repo_root` and generates the rules of each directory."""
  packages: List[Package] = []
  configs: Dict[str, CMakeConfig] = {}
  for directory, dirnames, filenames in os.walk(repo_root):
    dirnames[:] = sorted(
        d for d in dirnames if not _skip_directory(d, excludes)
    )
    rel = pathlib.Path(directory).relative_to(repo_root).as_posix()
    if rel == ".":
      rel = ""
    parent = root_config
    if rel:
      parent = configs[posixpath.dirname(rel)]

    build_file, build_text = _read_build_file(directory)
    directives = read_directives(build_text)
    config = parent.with_directives(directives, rel)
    configs[rel] = config

    args = GenerateArgs(
        directory=directory,
        rel=rel,
        regular_files=sorted(filenames),
        config=config,
        repo_root=repo_root,
    )
    rules = generate_rules(args, fallback=fallback)
    if not rules:
      continue
    package = Package(rel, directory, config, build_file, build_text)
    package.rules = rules
    packages.append(package)
  return packages


def resolve_packages(repo_root: str, packages: List[Package]):
  """Replaces the rules of each package with dependency-resolved copies."""
  index = RuleIndex()
  for package in packages:
    index.add_rules(package.package_id, package.rules)
  for package in packages:
    resolved_rules = []
    for rule in package.rules:
      if rule.kind not in (CC_BINARY, CC_LIBRARY):
        resolved_rules.append(rule)
        continue
      from_label = package.package_id.get_target_id(rule.name)
      deps = resolve_deps(index, rule, from_label, repo_root)
      resolved_rules.append(with_resolved_deps(rule, deps, from_label))
    package.rules = resolved_rules


def build_file_text(package: Package) -> str:
  """Returns the new BUILD file text, keeping hand-written content."""
  builder = BuildFileBuilder()
  builder.add_rules(package.rules)
  return builder.as_text(existing=package.build_text)


def inspect(source_dir: str, cmake_executable: str, defines: Dict[str, str]):
  """Prints the targets reported by the CMake File API for `source_dir`."""
  api = CMakeFileApi(
      source_dir,
      os.path.join(source_dir, BUILD_OUTPUT_DIR),
      cmake_executable=cmake_executable,
      cmake_defines=defines,
  )
  model = api.extract()
  print(f"{len(model)} targets in {source_dir}")
  for target in model.sorted_targets():
    print(f"  {target.name} ({target.kind})")
    print(f"    sources: {' '.join(target.sources)}")
    print(f"    headers: {' '.join(target.headers)}")
    print(f"    include directories: {' '.join(target.include_directories)}")
    print(f"    linked libraries: {' '.join(target.linked_libraries)}")
  for record in model.configure_files:
    print(f"  configure_file {record.input_file} -> {record.output_file}")


def main(argv: Optional[List[str]] = None) -> int:
  ap = argparse.ArgumentParser(
      description="Generates Bazel BUILD files from CMakeLists.txt files."
  )
  ap.add_argument("--repo-root", default=os.getcwd())
  ap.add_argument("--cmake-executable", default="cmake")
  ap.add_argument("--define", action="append", default=[])
  ap.add_argument("--use-file-api", action="store_true")
  ap.add_argument(
      "--no-fallback",
      action="store_true",
      help="Fail instead of parsing CMakeLists.txt when the File API fails.",
  )
  ap.add_argument(
      "--configure-mode",
      choices=[CONFIGURE_MODE_CMAKE, CONFIGURE_MODE_GENRULE],
      default=CONFIGURE_MODE_CMAKE,
  )
  ap.add_argument("--cmake-binary-label", default="//:cmake")
  ap.add_argument(
      "--build-file-name",
      default=BUILD_FILE_NAMES[0],
      help="Name of new BUILD files; existing ones are updated in place.",
  )
  ap.add_argument("--exclude", action="append", default=[])
  ap.add_argument("--dry-run", action="store_true")
  ap.add_argument(
      "--inspect",
      metavar="SOURCE_DIR",
      help="Print the CMake File API targets of SOURCE_DIR and exit.",
  )
  ap.add_argument("-v", "--verbose", action="count", default=0)

  args = ap.parse_args(argv)

  logging.basicConfig(
      level=max(logging.DEBUG, logging.WARNING - 10 * args.verbose),
      format="%(levelname)s %(name)s: %(message)s",
  )
  defines = _parse_defines(ap, args.define)

  if args.inspect:
    try:
      inspect(os.path.abspath(args.inspect), args.cmake_executable, defines)
    except FileApiError as e:
      print(f"CMake File API failed: {e}", file=sys.stderr)
      return 1
    return 0

  repo_root = os.path.abspath(args.repo_root)
  root_config = CMakeConfig(
      cmake_executable=args.cmake_executable,
      cmake_defines=defines,
      use_file_api=args.use_file_api,
      configure_mode=args.configure_mode,
      cmake_binary_label=args.cmake_binary_label,
  )

  try:
    packages = collect_packages(
        repo_root, root_config, args.exclude, fallback=not args.no_fallback
    )
  except FileApiError as e:
    print(f"cmake_to_bazel failed: {e}", file=sys.stderr)
    return 1

  resolve_packages(repo_root, packages)

  for package in packages:
    text = build_file_text(package)
    path = pathlib.PurePath(
        package.build_file
        or os.path.join(package.directory, args.build_file_name)
    )
    if args.dry_run:
      print(f"### {path}\n{text}")
      continue
    write_file_if_not_already_equal(path, text.encode("utf-8"))
    _logger.info("Wrote %s", path)
  return 0
