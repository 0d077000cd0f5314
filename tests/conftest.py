# Copyright: (c) 2023, Jordan Borean (@jborean93) <jborean93@gmail.com>
# MIT License (see LICENSE or https://opensource.org/licenses/MIT)

from __future__ import annotations

import pathlib
import typing as t

import pytest


def get_test_data(name: str) -> str:
    test_path = pathlib.Path(__file__).parent / "data" / name
    return test_path.read_text(encoding="utf-8")


@pytest.fixture
def subschema_attributes() -> t.Dict[str, t.List[str]]:
    attributes: t.Dict[str, t.List[str]] = {}
    for line in get_test_data("openldap_subschema.txt").splitlines():
        if not line:
            continue

        name, value = line.split(": ", 1)
        attributes.setdefault(name, []).append(value)

    return attributes
