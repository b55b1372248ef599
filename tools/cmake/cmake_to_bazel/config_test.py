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
"""Tests for directive configuration."""

# pylint: disable=g-importing-member,relative-beyond-top-level

from .config import CMakeConfig
from .config import Directive
from .config import parse_define_directive
from .config import read_directives


def test_read_directives() -> None:
  directives = read_directives("""
# gazelle:cmake_executable /opt/cmake/bin/cmake
#gazelle:cmake_define  ENABLE_DRAFTS   OFF
# gazelle:cmake_source @libzmq//:srcs
# gazelle:exclude third_party
# not a directive
cc_library(name = "x")
""")
  assert directives == [
      Directive("cmake_executable", "/opt/cmake/bin/cmake"),
      Directive("cmake_define", "ENABLE_DRAFTS   OFF"),
      Directive("cmake_source", "@libzmq//:srcs"),
  ]


def test_parse_define_directive() -> None:
  assert parse_define_directive("WITH_TLS OFF") == ("WITH_TLS", "OFF")
  assert parse_define_directive("  A\tB ") == ("A", "B")
  assert parse_define_directive("ONLY_KEY") is None
  assert parse_define_directive("A B C") is None
  assert parse_define_directive("") is None


def test_with_directives() -> None:
  root = CMakeConfig()
  config = root.with_directives([
      Directive("cmake_executable", "/usr/bin/cmake3"),
      Directive("cmake_define", "WITH_TLS OFF"),
      Directive("cmake_define", "MALFORMED"),
      Directive("cmake_define", "A B C"),
      Directive("cmake_source", "@libzmq//:srcs"),
      Directive("go_prefix", "example.com/x"),
  ])
  assert config.cmake_executable == "/usr/bin/cmake3"
  assert dict(config.cmake_defines) == {"WITH_TLS": "OFF"}
  assert config.cmake_source == "@libzmq//:srcs"
  assert config.external_repository == "libzmq"

  # The parent is unchanged.
  assert root.cmake_executable == "cmake"
  assert not root.cmake_defines
  assert root.external_repository is None


def test_defines_do_not_leak_between_packages() -> None:
  root = CMakeConfig().with_directives([Directive("cmake_define", "A 1")])
  first = root.with_directives([Directive("cmake_define", "B 2")], "first")
  second = root.with_directives([], "second")
  assert dict(first.cmake_defines) == {"A": "1", "B": "2"}
  assert dict(second.cmake_defines) == {"A": "1"}
  assert dict(root.cmake_defines) == {"A": "1"}


def test_cmake_source_is_package_scoped() -> None:
  parent = CMakeConfig().with_directives(
      [Directive("cmake_source", "@curl//:srcs")]
  )
  child = parent.with_directives([])
  assert parent.external_repository == "curl"
  assert child.cmake_source is None


def test_invalid_cmake_source_is_ignored() -> None:
  config = CMakeConfig().with_directives(
      [Directive("cmake_source", "@curl///bad")]
  )
  assert config.cmake_source is None
