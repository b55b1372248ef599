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
"""Tests for ${VAR} substitution."""

# pylint: disable=relative-beyond-top-level

from .variable_substitution import apply_variable_substitutions
from .variable_substitution import resolve_configure_file_path


def test_apply_variable_substitutions():
  subs = {"SRC": "src", "NAME": "core", "src_core": "nested"}

  assert "src/core.cc" == apply_variable_substitutions(
      "${SRC}/${NAME}.cc", subs
  )
  assert "plain.cc" == apply_variable_substitutions("plain.cc", subs)
  assert "nested" == apply_variable_substitutions("${${SRC}_${NAME}}", subs)

  # Unknown and unterminated references are left in place.
  assert "${OTHER}/a.cc" == apply_variable_substitutions("${OTHER}/a.cc", subs)
  assert "src/${NAME" == apply_variable_substitutions("${SRC}/${NAME", subs)
  assert "$SRC" == apply_variable_substitutions("$SRC", subs)


def test_resolve_configure_file_path():
  assert "config.h.in" == resolve_configure_file_path(
      "${CMAKE_CURRENT_SOURCE_DIR}/config.h.in", {}
  )
  assert ".cmake-build/config.h" == resolve_configure_file_path(
      "${CMAKE_CURRENT_BINARY_DIR}/config.h", {}
  )
  assert "include/version.h" == resolve_configure_file_path(
      "./${INC}/version.h", {"INC": "include"}
  )
  assert "config.h" == resolve_configure_file_path("/config.h", {})


def test_resolve_configure_file_path_absolute():
  assert "gen/config.h" == resolve_configure_file_path(
      "/work/proj/gen/config.h", {}, source_dir="/work/proj"
  )
  assert "gen/config.h" == resolve_configure_file_path(
      "${ROOT}/gen/config.h", {"ROOT": "/work/proj"}, source_dir="/work/proj"
  )
