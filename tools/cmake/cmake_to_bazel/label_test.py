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
"""Tests for label parsing and formatting."""

# pylint: disable=g-importing-member,relative-beyond-top-level

import pytest

from .label import PackageId
from .label import parse_absolute_target
from .label import RepositoryId
from .label import TargetId


def test_parse_absolute_target():
  assert TargetId(
      repository_name='foo', package_name='bar', target_name='bar'
  ) == parse_absolute_target('@foo//bar')
  assert TargetId(
      repository_name='foo', package_name='', target_name='srcs'
  ) == parse_absolute_target('@foo//:srcs')
  assert TargetId(
      repository_name='foo', package_name='', target_name='foo'
  ) == parse_absolute_target('@foo')

  with pytest.raises(ValueError):
    parse_absolute_target('')
  with pytest.raises(ValueError):
    parse_absolute_target('@foo///bar')


def test_parse_package_relative_label():
  package = PackageId('', 'src/core')
  assert TargetId('', 'src/core', 'lib') == package.parse_target(':lib')
  assert TargetId('', 'src/core', 'lib') == package.parse_target('lib')
  assert TargetId('', 'other', 'x') == package.parse_target('//other:x')
  assert TargetId('zmq', '', 'srcs') == package.parse_target('@zmq//:srcs')
  with pytest.raises(ValueError):
    package.parse_target('')


def test_as_label():
  assert TargetId('', 'a/b', 'c').as_label() == '//a/b:c'
  assert TargetId('', '', 'c').as_label() == '//:c'
  assert TargetId('libzmq', '', 'srcs').as_label() == '@libzmq//:srcs'


def test_relative_to():
  t = RepositoryId('').get_package_id('app').get_target_id('my_lib')
  assert t.relative_to(PackageId('', 'app')) == ':my_lib'
  assert t.relative_to(PackageId('', 'lib')) == '//app:my_lib'
  assert t.relative_to(None) == '//app:my_lib'
