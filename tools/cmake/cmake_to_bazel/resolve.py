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
"""Resolves the dependencies of generated rules against a project index.

Resolution is a second pass, run after rules for every package have been
synthesized and added to a `RuleIndex`.  It reads only the private metadata
and the srcs/hdrs of each rule.
"""

# pylint: disable=relative-beyond-top-level

import logging
import os
import posixpath
import re
from typing import Dict, Iterable, List, NamedTuple, Optional, Tuple

from .bazel_rule import CC_LIBRARY
from .bazel_rule import GeneratedRule
from .bazel_rule import INCLUDE_DIRECTORIES_ATTR
from .bazel_rule import LINKED_LIBRARIES_ATTR
from .label import PackageId
from .label import TargetId
from .util import append_if_missing
from .util import join_package_path
from .util import uniqueify

_logger = logging.getLogger(__name__)

_INCLUDE_RE = re.compile(r'^\s*#\s*include\s*([<"])([^>"]+)[>"]')

CC_LANG = "cc"

# Rule kinds which a linked library name may refer to.
LIBRARY_KINDS = frozenset([CC_LIBRARY, "cc_import"])


class ImportSpec(NamedTuple):
  """An importable name, such as a header path, in some language."""

  lang: str
  imp: str


def _strip_prefix(path: str, prefix: str) -> Optional[str]:
  prefix = prefix.strip("/")
  if not prefix or prefix == ".":
    return path
  if path.startswith(prefix + "/"):
    return path[len(prefix) + 1 :]
  return None


def imports_for_rule(rule: GeneratedRule, package: str) -> List[str]:
  """Returns the names by which other rules may depend on `rule`.

  A library is importable by its name and by each header, as a
  repository-relative path, a package-relative path, and relative to its
  `strip_include_prefix` and include directories.
  """
  if rule.kind not in LIBRARY_KINDS:
    return []
  result = [rule.name]
  include_dirs = rule.private_attr(INCLUDE_DIRECTORIES_ATTR, [])
  strip_include_prefix = rule.attr("strip_include_prefix")
  for hdr in rule.attr_strings("hdrs"):
    result.append(join_package_path(package, hdr))
    result.append(hdr)
    if strip_include_prefix:
      stripped = _strip_prefix(hdr, strip_include_prefix)
      if stripped:
        result.append(stripped)
    for include_dir in include_dirs:
      stripped = _strip_prefix(hdr, include_dir)
      if stripped:
        result.append(stripped)
  return uniqueify(result)


class RuleIndex:
  """Project-wide index of generated rules and their imports."""

  def __init__(self):
    self._rules: Dict[TargetId, GeneratedRule] = {}
    self._imports: Dict[ImportSpec, List[TargetId]] = {}

  def __len__(self) -> int:
    return len(self._rules)

  def add_rule(self, package_id: PackageId, rule: GeneratedRule) -> TargetId:
    target_id = package_id.get_target_id(rule.name)
    if target_id in self._rules:
      _logger.warning("Duplicate rule %s", target_id.as_label())
    self._rules[target_id] = rule
    for imp in imports_for_rule(rule, package_id.package_name):
      self.register_import(ImportSpec(CC_LANG, imp), target_id)
    return target_id

  def add_rules(
      self, package_id: PackageId, rules: Iterable[GeneratedRule]
  ) -> List[TargetId]:
    return [self.add_rule(package_id, rule) for rule in rules]

  def register_import(self, spec: ImportSpec, target_id: TargetId):
    """Declares that `target_id` provides `spec`.

    This is how libraries which are not generated, such as external
    repositories, become resolvable.
    """
    append_if_missing(self._imports.setdefault(spec, []), [target_id])

  def get_rule(self, target_id: TargetId) -> Optional[GeneratedRule]:
    return self._rules.get(target_id)

  def find_rule_in_package(
      self, package_id: PackageId, name: str
  ) -> Optional[Tuple[TargetId, GeneratedRule]]:
    target_id = package_id.get_target_id(name)
    rule = self._rules.get(target_id)
    if rule is None:
      return None
    return (target_id, rule)

  def find_rules_by_import(self, spec: ImportSpec) -> List[TargetId]:
    return list(self._imports.get(spec, []))


def _scan_includes(path: str) -> Iterable[Tuple[str, str]]:
  """Yields (delimiter, path) for each #include line of a file."""
  with open(path, "r", encoding="utf-8", errors="replace") as f:
    for line in f:
      m = _INCLUDE_RE.match(line)
      if m:
        yield (m.group(1), m.group(2))


def _resolve_include(
    index: RuleIndex,
    delimiter: str,
    include: str,
    from_label: TargetId,
    file_path: str,
) -> List[TargetId]:
  if delimiter == '"':
    # Quoted includes are first looked up next to the including file.
    local = posixpath.normpath(
        join_package_path(
            from_label.package_name,
            posixpath.join(posixpath.dirname(file_path), include),
        )
    )
    found = index.find_rules_by_import(ImportSpec(CC_LANG, local))
    if found:
      return found
  return index.find_rules_by_import(ImportSpec(CC_LANG, include))


def resolve_deps(
    index: RuleIndex,
    rule: GeneratedRule,
    from_label: TargetId,
    repo_root: str,
) -> List[TargetId]:
  """Computes the dependencies of `rule`.

  Args:
    index: Index of all rules in the project.
    rule: The rule to resolve.
    from_label: The label of `rule`.
    repo_root: Root directory of the repository containing `rule`.

  Returns:
    Distinct dependencies, in the order found.  `from_label` is never
    included.
  """
  results: List[TargetId] = []

  for lib in rule.private_attr(LINKED_LIBRARIES_ATTR, []):
    local = index.find_rule_in_package(from_label.package_id, lib)
    if local is not None and local[1].kind in LIBRARY_KINDS:
      results.append(local[0])
      continue
    found = index.find_rules_by_import(ImportSpec(CC_LANG, lib))
    if found:
      results.extend(found)
    else:
      _logger.info(
          "%s: could not resolve linked library %s", from_label.as_label(), lib
      )

  package_dir = os.path.join(repo_root, from_label.package_name)
  for file_path in rule.attr_strings("srcs") + rule.attr_strings("hdrs"):
    path = os.path.join(package_dir, file_path)
    try:
      includes = list(_scan_includes(path))
    except OSError as e:
      _logger.info(
          "%s: cannot scan %s for includes: %s",
          from_label.as_label(),
          file_path,
          e,
      )
      continue
    for delimiter, include in includes:
      found = _resolve_include(index, delimiter, include, from_label, file_path)
      if not found:
        _logger.debug(
            "%s: unresolved include %s", from_label.as_label(), include
        )
      results.extend(found)

  return [t for t in uniqueify(results) if t != from_label]


def format_label(label: TargetId, from_package: PackageId) -> str:
  """Renders `label` as `:name`, `//pkg:name` or `@repo//pkg:name`."""
  return label.relative_to(from_package)


def merge_deps(
    rule: GeneratedRule, resolved: Iterable[TargetId], from_label: TargetId
) -> List[str]:
  """Returns the sorted union of `rule`'s deps and `resolved`."""
  deps = set(rule.attr_strings("deps"))
  deps.update(format_label(t, from_label.package_id) for t in resolved)
  deps.discard(f":{from_label.target_name}")
  return sorted(deps)


def with_resolved_deps(
    rule: GeneratedRule, resolved: Iterable[TargetId], from_label: TargetId
) -> GeneratedRule:
  """Returns a copy of `rule` whose deps include `resolved`."""
  result = GeneratedRule(rule.kind, rule.name)
  result.attrs = dict(rule.attrs)
  result.private_attrs = dict(rule.private_attrs)
  deps = merge_deps(rule, resolved, from_label)
  if deps:
    result.set_attr("deps", deps)
  return result
