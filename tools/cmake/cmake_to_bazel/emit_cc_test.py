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
"""Tests for emit_cc functions."""

# pylint: disable=g-importing-member,relative-beyond-top-level

import logging

from .bazel_rule import CONFIGURE_OUTPUT_ATTR
from .bazel_rule import INCLUDE_DIRECTORIES_ATTR
from .bazel_rule import LINKED_LIBRARIES_ATTR
from .cmake_lists import parse_cmake_lists_text
from .cmake_target import ConfigureFileRecord
from .cmake_target import LIBRARY
from .cmake_target import TargetModel
from .config import CMakeConfig
from .config import CONFIGURE_MODE_GENRULE
from .emit_cc import construct_include_groups
from .emit_cc import synthesize_rules


def _by_name(rules):
  return {r.name: r for r in rules}


def test_app_and_library() -> None:
  model = parse_cmake_lists_text("""
add_executable(app main.cc)
add_library(my_lib lib.cc lib.h)
target_link_libraries(app my_lib)
""")
  rules = synthesize_rules(
      model, ["main.cc", "lib.cc", "lib.h", "CMakeLists.txt"]
  )
  assert [(r.kind, r.name) for r in rules] == [
      ("cc_binary", "app"),
      ("cc_library", "my_lib"),
  ]
  app, my_lib = rules
  assert app.attrs == {"srcs": ["main.cc"], "deps": [":my_lib"]}
  assert my_lib.attrs == {"srcs": ["lib.cc"], "hdrs": ["lib.h"]}
  assert app.private_attr(LINKED_LIBRARIES_ATTR) == ["my_lib"]


def test_type_keyword_is_dropped() -> None:
  for keyword in ("STATIC", "SHARED"):
    model = parse_cmake_lists_text(f"add_library(N {keyword} a.cc a.h)")
    (rule,) = synthesize_rules(model, ["a.cc", "a.h"])
    assert rule.attr("srcs") == ["a.cc"]
    assert rule.attr("hdrs") == ["a.h"]


def test_scope_keyword_does_not_change_deps() -> None:
  base = "add_library(M m.cc)\nadd_library(N n.cc)\n"
  files = ["m.cc", "n.cc"]
  plain = _by_name(
      synthesize_rules(
          parse_cmake_lists_text(base + "target_link_libraries(N M)"), files
      )
  )
  public = _by_name(
      synthesize_rules(
          parse_cmake_lists_text(base + "target_link_libraries(N PUBLIC M)"),
          files,
      )
  )
  private = _by_name(
      synthesize_rules(
          parse_cmake_lists_text(base + "target_link_libraries(N PRIVATE M)"),
          files,
      )
  )
  assert plain["N"].attr("deps") == [":M"]
  assert public["N"].attr("deps") == [":M"]
  assert private["N"].attr("deps") == [":M"]


def test_external_libraries_are_private() -> None:
  model = parse_cmake_lists_text("""
add_library(N n.cc)
target_link_libraries(N PRIVATE zmq N)
""")
  (rule,) = synthesize_rules(model, ["n.cc"])
  assert rule.attr("deps") is None
  assert rule.private_attr(LINKED_LIBRARIES_ATTR) == ["zmq", "N"]


def test_files_are_filtered_to_directory() -> None:
  model = parse_cmake_lists_text(
      "add_library(N b.cc a.cc sub/c.cc x.h sub/y.h)"
  )
  (rule,) = synthesize_rules(model, ["a.cc", "b.cc", "x.h", "other.cc"])
  assert rule.attr("srcs") == ["a.cc", "b.cc"]
  assert rule.attr("hdrs") == ["x.h"]


def test_target_without_files_is_suppressed() -> None:
  model = parse_cmake_lists_text("""
add_library(elsewhere sub/a.cc sub/a.h)
add_executable(app main.cc)
target_link_libraries(app elsewhere)
""")
  rules = synthesize_rules(model, ["main.cc"])
  assert [r.name for r in rules] == ["app"]
  # The link is still local to the model, so it is kept.
  assert rules[0].attr("deps") == [":elsewhere"]


def test_deterministic() -> None:
  text = """
add_library(z z.cc z.h)
add_library(a a.cc)
target_link_libraries(a PUBLIC z y x)
target_include_directories(a PUBLIC inc2 inc1)
configure_file(config.h.in config.h)
"""
  files = ["z.cc", "z.h", "a.cc", "config.h.in"]
  first = synthesize_rules(parse_cmake_lists_text(text), files)
  second = synthesize_rules(
      parse_cmake_lists_text(text), list(reversed(files))
  )
  assert [r.as_text() for r in first] == [r.as_text() for r in second]
  assert _by_name(first)["a"].attr("deps") == [":a_includes", ":z"]


def test_configure_file() -> None:
  model = parse_cmake_lists_text(
      "configure_file(config.h.in config.h)",
      cmake_defines={"WITH_TLS": "OFF"},
  )
  rules = synthesize_rules(model, ["config.h.in", "CMakeLists.txt"])
  assert [(r.kind, r.name) for r in rules] == [
      ("cmake_configure_file", "config_h"),
      ("cc_library", "config_headers"),
  ]
  gen, headers = rules
  assert gen.attrs == {
      "out": "config.h",
      "cmake_binary": "//:cmake",
      "cmake_source_dir": ".",
      "cmake_source_files": ["CMakeLists.txt", "config.h.in"],
      "defines": {"WITH_TLS": "OFF"},
  }
  assert gen.private_attr(CONFIGURE_OUTPUT_ATTR) == "config.h"
  assert headers.attrs == {"hdrs": ["config.h"]}


def test_configure_file_in_subdirectory() -> None:
  model = TargetModel()
  model.add_configure_file(
      ConfigureFileRecord("version.h.in", ".cmake-build/version.h", {})
  )
  model.add_configure_file(
      ConfigureFileRecord("data.txt.in", "data.txt", {})
  )
  rules = _by_name(synthesize_rules(model, []))
  assert sorted(rules) == ["data_txt", "version_h", "version_headers"]
  assert rules["version_headers"].attrs == {
      "hdrs": [".cmake-build/version.h"],
      "strip_include_prefix": ".cmake-build",
  }


def test_configure_file_genrule() -> None:
  model = TargetModel()
  model.add_configure_file(
      ConfigureFileRecord(
          "config.h.in", "include/config.h", {"VERSION": "1.2"}
      )
  )
  config = CMakeConfig(configure_mode=CONFIGURE_MODE_GENRULE)
  rules = synthesize_rules(
      model, ["config.h.in", "CMakeLists.txt"], config, package="third_party/x"
  )
  gen = rules[0]
  assert gen.kind == "genrule"
  assert gen.name == "config_h"
  assert gen.attr("srcs") == ["CMakeLists.txt", "config.h.in"]
  assert gen.attr("outs") == ["include/config.h"]
  cmd = gen.attr("cmd")
  assert 'rel="$${f#third_party/x/}"' in cmd
  assert "cmake . -DVERSION=1.2" in cmd
  assert "#ifndef INCLUDE_CONFIG_H_" in cmd
  assert '"$(RULEDIR)/include/config.h"' in cmd
  assert rules[1].attrs == {
      "hdrs": ["include/config.h"],
      "strip_include_prefix": "include",
  }


def test_include_directories_are_consolidated() -> None:
  model = parse_cmake_lists_text("""
add_library(b b.cc)
add_library(a a.cc)
add_library(c c.cc)
add_library(d d.cc)
target_include_directories(a PUBLIC include src)
target_include_directories(b PRIVATE src include)
target_include_directories(c PUBLIC other)
""")
  rules = synthesize_rules(model, ["a.cc", "b.cc", "c.cc", "d.cc"])
  include_rules = [r for r in rules if r.kind == "cmake_include_directories"]
  assert [(r.name, r.attr("includes")) for r in include_rules] == [
      ("a_includes", ["include", "src"]),
      ("c_includes", ["other"]),
  ]
  by_name = _by_name(rules)
  assert by_name["a"].attr("deps") == [":a_includes"]
  assert by_name["b"].attr("deps") == [":a_includes"]
  assert by_name["c"].attr("deps") == [":c_includes"]
  assert by_name["d"].attr("deps") is None
  assert by_name["b"].private_attr(INCLUDE_DIRECTORIES_ATTR) == [
      "src",
      "include",
  ]


def test_include_directories_external_repository() -> None:
  model = TargetModel()
  target = model.declare("my_lib", LIBRARY)
  target.add_files(["lib.cc", "lib.h"])
  target.add_include_directories(["include", ".cmake-build"])
  config = CMakeConfig(cmake_source="@libzmq//:srcs")
  rules = synthesize_rules(
      model, ["lib.cc", "lib.h", "main.cc", "CMakeLists.txt"], config
  )
  by_name = _by_name(rules)
  include_rule = by_name["libzmq_includes"]
  assert include_rule.kind == "cmake_include_directories"
  assert include_rule.attr("srcs") == ["@libzmq//:srcs"]
  assert include_rule.attr("includes") == ["include"]
  assert ":libzmq_includes" in by_name["my_lib"].attr("deps")


def test_construct_include_groups_external_names() -> None:
  groups = construct_include_groups(
      {"a": ["x"], "b": ["y", ".cmake-build/gen"], "c": [".cmake-build"]},
      external_repository="curl",
  )
  assert [(g.name, g.includes, g.members) for g in groups] == [
      ("curl_includes", ("x",), ["a"]),
      ("curl_includes_2", ("y",), ["b"]),
  ]


def test_configure_files_with_same_stem() -> None:
  model = parse_cmake_lists_text("""
configure_file(config.h.in config.h)
configure_file(config.hpp.in config.hpp)
configure_file(config.h.in config.h)
""")
  rules = synthesize_rules(model, ["config.h.in", "config.hpp.in"])
  assert [r.name for r in rules] == [
      "config_h",
      "config_headers",
      "config_hpp",
      "config_hpp_headers",
  ]
  assert rules[3].attr("hdrs") == ["config.hpp"]


def test_generated_names_do_not_collide_with_targets() -> None:
  model = parse_cmake_lists_text("""
add_library(config_h a.cc)
add_library(a_includes b.cc)
target_include_directories(config_h PUBLIC include)
configure_file(config.h.in config.h)
""")
  rules = synthesize_rules(model, ["a.cc", "b.cc", "config.h.in"])
  names = [r.name for r in rules]
  assert len(names) == len(set(names))
  by_name = _by_name(rules)
  # The target keeps its name; the colliding configure_file is skipped.
  assert by_name["config_h"].kind == "cc_library"
  assert "config_headers" not in by_name
  assert by_name["config_h"].attr("deps") == [":config_h_includes"]

  model = parse_cmake_lists_text("""
add_library(a a.cc)
add_library(a_includes b.cc)
target_include_directories(a PUBLIC include)
""")
  by_name = _by_name(synthesize_rules(model, ["a.cc", "b.cc"]))
  assert by_name["a_includes"].kind == "cc_library"
  assert by_name["a_includes_2"].kind == "cmake_include_directories"
  assert by_name["a"].attr("deps") == [":a_includes_2"]


def test_dep_without_rule_is_logged(caplog) -> None:
  model = parse_cmake_lists_text("""
add_library(elsewhere sub/a.cc)
add_executable(app main.cc)
target_link_libraries(app elsewhere)
""")
  with caplog.at_level(logging.DEBUG):
    synthesize_rules(model, ["main.cc"])
  assert "app depends on :elsewhere" in caplog.text
