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
"""Tests for the target model."""

# pylint: disable=g-importing-member,relative-beyond-top-level

from .cmake_target import ConfigureFileRecord
from .cmake_target import EXECUTABLE
from .cmake_target import LIBRARY
from .cmake_target import TargetModel


def test_declare_keeps_first_kind() -> None:
  model = TargetModel()
  lib = model.declare("foo", LIBRARY)
  assert model.declare("foo", EXECUTABLE) is lib
  assert lib.kind == LIBRARY
  assert "foo" in model
  assert len(model) == 1


def test_add_files_deduplicates() -> None:
  model = TargetModel()
  target = model.declare("foo", LIBRARY)
  target.add_files(["a.cc", "a.h", "a.cc", "SHARED", "README"])
  target.add_linked_libraries(["z", "m", "z"])
  target.add_include_directories(["inc", "inc"])
  assert target.sources == ["a.cc"]
  assert target.headers == ["a.h"]
  assert target.linked_libraries == ["z", "m"]
  assert target.include_directories == ["inc"]


def test_sorted_targets() -> None:
  model = TargetModel()
  model.declare("b", LIBRARY)
  model.declare("a", EXECUTABLE)
  assert [t.name for t in model.sorted_targets()] == ["a", "b"]


def test_configure_file_record() -> None:
  record = ConfigureFileRecord("config.h.in", "config.h", {})
  assert record.rule_name == "config_h"
  assert record.output_stem == "config"
  assert record.output_is_header

  record = ConfigureFileRecord("x.in", "gen/x.txt", {})
  assert record.rule_name == "x_txt"
  assert record.output_stem == "x"
  assert not record.output_is_header

  assert ConfigureFileRecord("x.in", "", {}).rule_name == "config_file"
