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
"""Synthesizes Bazel C/C++ rules from a TargetModel.

Rules are returned in a fixed order: configure-file rules, then include
directory rules, then one rule per target sorted by name.  Linked libraries
which are not targets of the same model are kept as private metadata for
dependency resolution.
"""

# pylint: disable=relative-beyond-top-level

import logging
import posixpath
import re
import shlex
from typing import Collection, Dict, List, Mapping, NamedTuple, Optional, Set, Tuple

from .bazel_rule import CC_BINARY
from .bazel_rule import CC_LIBRARY
from .bazel_rule import CMAKE_CONFIGURE_FILE
from .bazel_rule import CMAKE_INCLUDE_DIRECTORIES
from .bazel_rule import CONFIGURE_OUTPUT_ATTR
from .bazel_rule import GENRULE
from .bazel_rule import GeneratedRule
from .bazel_rule import INCLUDE_DIRECTORIES_ATTR
from .bazel_rule import LINKED_LIBRARIES_ATTR
from .cmake_target import CMakeTarget
from .cmake_target import ConfigureFileRecord
from .cmake_target import EXECUTABLE
from .cmake_target import LIBRARY
from .cmake_target import TargetModel
from .config import CMakeConfig
from .config import CONFIGURE_MODE_GENRULE
from .variable_substitution import BUILD_OUTPUT_DIR

_logger = logging.getLogger(__name__)

_RULE_KINDS = {
    LIBRARY: CC_LIBRARY,
    EXECUTABLE: CC_BINARY,
}


class IncludeGroup(NamedTuple):
  """Targets sharing one include-directory set."""

  name: str
  includes: Tuple[str, ...]
  members: List[str]


def _is_build_output_path(path: str) -> bool:
  return path == BUILD_OUTPUT_DIR or path.startswith(BUILD_OUTPUT_DIR + "/")


def _filter_files(
    target: CMakeTarget, files: List[str], regular_files: Collection[str]
) -> List[str]:
  result = []
  for f in files:
    if f in regular_files:
      result.append(f)
    else:
      _logger.info(
          "File %s of target %s not found in the directory, skipping",
          f,
          target.name,
      )
  return sorted(set(result))


def construct_include_groups(
    include_sets: Mapping[str, Collection[str]],
    external_repository: Optional[str] = None,
) -> List[IncludeGroup]:
  """Consolidates targets with identical include-directory sets.

  Args:
    include_sets: Include directories, keyed by target name.
    external_repository: The repository providing the sources, if any.  Build
      output paths are dropped from its include sets.

  Returns:
    One group per distinct non-empty include set, ordered by the name of the
    first member.
  """
  groups: Dict[Tuple[str, ...], List[str]] = {}
  for name in sorted(include_sets):
    includes = include_sets[name]
    if external_repository:
      includes = [x for x in includes if not _is_build_output_path(x)]
    key = tuple(sorted(set(includes)))
    if not key:
      continue
    groups.setdefault(key, []).append(name)

  result = []
  for key, members in groups.items():
    if external_repository:
      name = f"{external_repository}_includes"
      if result:
        name = f"{name}_{len(result) + 1}"
    else:
      name = f"{members[0]}_includes"
    result.append(IncludeGroup(name=name, includes=key, members=members))
  return result


def _emit_include_rule(
    group: IncludeGroup, external_repository: Optional[str]
) -> GeneratedRule:
  rule = GeneratedRule(CMAKE_INCLUDE_DIRECTORIES, group.name)
  if external_repository:
    rule.set_attr("srcs", [f"@{external_repository}//:srcs"])
  rule.set_attr("includes", list(group.includes))
  return rule


def _emit_target(
    target: CMakeTarget, model: TargetModel, regular_files: Collection[str]
) -> Optional[GeneratedRule]:
  kind = _RULE_KINDS.get(target.kind)
  if kind is None:
    _logger.warning(
        "Unknown kind %s for target %s, skipping", target.kind, target.name
    )
    return None

  srcs = _filter_files(target, target.sources, regular_files)
  hdrs = _filter_files(target, target.headers, regular_files)
  if not srcs and not hdrs:
    _logger.info(
        "Skipping target %s: none of its files are in the directory",
        target.name,
    )
    return None

  rule = GeneratedRule(kind, target.name)
  if srcs:
    rule.set_attr("srcs", srcs)
  if hdrs:
    rule.set_attr("hdrs", hdrs)
  deps = sorted(
      set(
          f":{lib}"
          for lib in target.linked_libraries
          if lib != target.name and lib in model
      )
  )
  if deps:
    rule.set_attr("deps", deps)
  rule.set_private_attr(LINKED_LIBRARIES_ATTR, list(target.linked_libraries))
  rule.set_private_attr(
      INCLUDE_DIRECTORIES_ATTR, list(target.include_directories)
  )
  return rule


def _header_guard(path: str) -> str:
  return re.sub(r"[^A-Za-z0-9]", "_", path).upper() + "_"


def _genrule_cmd(
    record: ConfigureFileRecord, config: CMakeConfig, package: str
) -> str:
  """Returns a genrule command running cmake in a scratch directory.

  When cmake fails to produce the output, a minimal stand-in is written so
  that dependent compile actions can still run.
  """
  out = record.output_file
  built = out
  if built.startswith(BUILD_OUTPUT_DIR + "/"):
    built = built[len(BUILD_OUTPUT_DIR) + 1 :]
  cmake = [shlex.quote(config.cmake_executable), "."]
  for key in sorted(record.variables):
    cmake.append(shlex.quote(f"-D{key}={record.variables[key]}"))
  cmake_cmd = " ".join(cmake).replace("$", "$$")
  strip = f"{package}/" if package else ""

  lines = [
      "BUILD_DIR=$$(mktemp -d)",
      "for f in $(SRCS); do",
      f'  rel="$${{f#{strip}}}"',
      '  mkdir -p "$$BUILD_DIR/$$(dirname "$$rel")"',
      '  cp "$$f" "$$BUILD_DIR/$$rel"',
      "done",
      f'if (cd "$$BUILD_DIR" && {cmake_cmd} >/dev/null) &&'
      f' [ -f "$$BUILD_DIR/{built}" ]; then',
      f'  cp "$$BUILD_DIR/{built}" "$(RULEDIR)/{out}"',
      "else",
      f'  mkdir -p "$$(dirname "$(RULEDIR)/{out}")"',
  ]
  if record.output_is_header:
    guard = _header_guard(out)
    lines.extend([
        f"  cat > \"$(RULEDIR)/{out}\" <<'EOF'",
        f"#ifndef {guard}",
        f"#define {guard}",
        f"/* Stand-in for {out}; cmake did not generate it. */",
        f"#endif  /* {guard} */",
        "EOF",
    ])
  else:
    lines.append(f'  : > "$(RULEDIR)/{out}"')
  lines.extend(["fi", 'rm -rf "$$BUILD_DIR"'])
  return "\n".join(lines) + "\n"


def _unique_name(name: str, taken: Set[str]) -> str:
  """Returns `name`, or `name_2`, `name_3`, ... if it is already taken."""
  result = name
  i = 2
  while result in taken:
    result = f"{name}_{i}"
    i += 1
  return result


def _emit_configure_file(
    record: ConfigureFileRecord,
    regular_files: Collection[str],
    config: CMakeConfig,
    package: str,
    taken: Set[str],
) -> List[GeneratedRule]:
  """Emits the rules generating and exposing a configure_file() output.

  Names of emitted rules are added to `taken`.  A record whose rule name is
  already taken is skipped.
  """
  if record.rule_name in taken:
    _logger.warning(
        "Rule %s for configure_file output %s already exists, skipping",
        record.rule_name,
        record.output_file,
    )
    return []
  taken.add(record.rule_name)

  source_files = ["CMakeLists.txt"]
  if record.input_file and record.input_file != "CMakeLists.txt":
    source_files.append(record.input_file)

  if config.configure_mode == CONFIGURE_MODE_GENRULE:
    rule = GeneratedRule(GENRULE, record.rule_name)
    srcs = sorted(f for f in source_files if f in regular_files)
    if srcs:
      rule.set_attr("srcs", srcs)
    rule.set_attr("outs", [record.output_file])
    rule.set_attr("cmd", _genrule_cmd(record, config, package))
  else:
    rule = GeneratedRule(CMAKE_CONFIGURE_FILE, record.rule_name)
    rule.set_attr("out", record.output_file)
    rule.set_attr("cmake_binary", config.cmake_binary_label)
    rule.set_attr("cmake_source_dir", ".")
    rule.set_attr("cmake_source_files", source_files)
    rule.set_attr("defines", dict(record.variables))
  rule.set_private_attr(CONFIGURE_OUTPUT_ATTR, record.output_file)
  _logger.info(
      "Generated %s %s: %s -> %s",
      rule.kind,
      rule.name,
      record.input_file,
      record.output_file,
  )
  rules = [rule]

  if record.output_is_header:
    # `config.h` and `config.hpp` share a stem.
    name = f"{record.output_stem}_headers"
    if name in taken:
      name = _unique_name(f"{record.rule_name}_headers", taken)
    taken.add(name)
    headers = GeneratedRule(CC_LIBRARY, name)
    headers.set_attr("hdrs", [record.output_file])
    output_dir = posixpath.dirname(record.output_file)
    if output_dir and output_dir != ".":
      headers.set_attr("strip_include_prefix", output_dir)
    rules.append(headers)
  return rules


def synthesize_rules(
    model: TargetModel,
    regular_files: Collection[str],
    config: Optional[CMakeConfig] = None,
    package: str = "",
) -> List[GeneratedRule]:
  """Converts a TargetModel into rules for one package.

  Args:
    model: Targets and configure-file records of the directory.
    regular_files: Files present in the directory, relative to it.
    config: Configuration of the package.
    package: The package path, used by generated commands.

  Returns:
    The generated rules, with distinct names.
  """
  if config is None:
    config = CMakeConfig()
  regular_files = frozenset(regular_files)
  external_repository = config.external_repository

  target_rules = []
  for target in model.sorted_targets():
    rule = _emit_target(target, model, regular_files)
    if rule is not None:
      target_rules.append(rule)
  emitted = {r.name for r in target_rules}
  for rule in target_rules:
    for dep in rule.attr_strings("deps"):
      if dep[1:] not in emitted:
        _logger.debug(
            "%s depends on %s, which has no rule in this package",
            rule.name,
            dep,
        )

  # Target names come from CMakeLists.txt and are kept; other rules are
  # skipped or renamed when they collide.
  taken = set(emitted)
  rules: List[GeneratedRule] = []
  for record in model.configure_files:
    rules.extend(
        _emit_configure_file(record, regular_files, config, package, taken)
    )

  groups = construct_include_groups(
      {
          r.name: r.private_attr(INCLUDE_DIRECTORIES_ATTR, [])
          for r in target_rules
      },
      external_repository,
  )
  group_by_member = {}
  for group in groups:
    group = group._replace(name=_unique_name(group.name, taken))
    taken.add(group.name)
    rules.append(_emit_include_rule(group, external_repository))
    for member in group.members:
      group_by_member[member] = group.name

  for rule in target_rules:
    group_name = group_by_member.get(rule.name)
    if group_name is not None:
      rule.set_attr(
          "deps", sorted(set(rule.attr_strings("deps") + [f":{group_name}"]))
      )
    rules.append(rule)

  _logger.debug("Synthesized %d rules", len(rules))
  return rules
