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
"""Utilities to aid in building BUILD.bazel files.

Generated content is written between marker comments, so that hand-written
rules and directives in an existing BUILD file survive regeneration.  The
load() statements are kept in a block at the top of the file, and the
generated rules in a block at the end.
"""

# pylint: disable=g-doc-args,g-doc-return-or-yield,relative-beyond-top-level

import collections
import logging
from typing import Dict, Iterable, List, Set

from .bazel_rule import CMAKE_RULES_BZL
from .bazel_rule import GeneratedRule
from .bazel_rule import LOADABLE_KINDS
from .util import quote_string

_logger = logging.getLogger(__name__)

RULES_SECTION = 1000

BEGIN_LOADS = "# cmake_to_bazel: begin loads\n"
END_LOADS = "# cmake_to_bazel: end loads\n"
BEGIN_RULES = (
    "# cmake_to_bazel: begin generated rules.  Do not edit this block; it is\n"
    "# regenerated from CMakeLists.txt.\n"
)
END_RULES = "# cmake_to_bazel: end generated rules\n"


def remove_generated_block(text: str, begin: str, end: str) -> str:
  """Returns `text` without the block from `begin` through `end`."""
  start = text.find(begin)
  if start == -1:
    return text
  stop = text.find(end, start + len(begin))
  if stop == -1:
    _logger.warning("Unterminated generated block %r", begin.strip())
    return text[:start]
  return text[:start] + text[stop + len(end) :]


class BuildFileBuilder:
  """Utility to assist in building a BUILD.bazel file.

  BuildFileBuilder represents one BUILD.bazel file, and has methods to add
  load() statements and generated rules.
  """

  def __init__(self, rules_bzl: str = CMAKE_RULES_BZL):
    self._sections: Dict[int, List[str]] = collections.defaultdict(lambda: [])
    self._loads: Dict[str, Set[str]] = collections.defaultdict(set)
    self._rules_bzl = rules_bzl

  def load(self, bzl: str, symbol: str):
    self._loads[bzl].add(symbol)

  def addtext(self, text: str, section: int = RULES_SECTION):
    """Adds raw text to the generated block."""
    self._sections[section].append(text)

  def add_rule(self, rule: GeneratedRule):
    if rule.kind in LOADABLE_KINDS:
      self.load(self._rules_bzl, rule.kind)
    self.addtext(rule.as_text(), section=RULES_SECTION)

  def add_rules(self, rules: Iterable[GeneratedRule]):
    for rule in rules:
      self.add_rule(rule)

  def loads_text(self) -> str:
    loads = []
    for bzl in sorted(self._loads):
      symbols = ", ".join(quote_string(s) for s in sorted(self._loads[bzl]))
      loads.append(f"load({quote_string(bzl)}, {symbols})\n")
    return "".join(loads)

  def rules_text(self) -> str:
    blocks = []
    for k in sorted(set(self._sections.keys())):
      blocks.extend(self._sections[k])
    return "\n".join(blocks)

  def as_text(self, existing: str = "") -> str:
    """Returns the file text, keeping the hand-written parts of `existing`.

    Generated blocks already present in `existing` are replaced.
    """
    kept = remove_generated_block(existing, BEGIN_LOADS, END_LOADS)
    kept = remove_generated_block(kept, BEGIN_RULES, END_RULES).strip("\n")

    blocks = []
    loads = self.loads_text()
    if loads:
      blocks.append(BEGIN_LOADS + loads + END_LOADS)
    if kept:
      blocks.append(kept + "\n")
    rules = self.rules_text()
    if rules:
      rules += "\n"
    blocks.append(BEGIN_RULES + "\n" + rules + END_RULES)
    return "\n".join(blocks)
