import json

import pytest

from management_api.domain.errors import ParseError, UnknownActionError
from management_api.domain.models import CanonicalAction
from management_api.domain.parser import parse_permission_target

R, W, M, D, N = (
    CanonicalAction.READ,
    CanonicalAction.WRITE,
    CanonicalAction.MANAGE,
    CanonicalAction.DELETE,
    CanonicalAction.ANNOTATE,
)


def _body(document) -> bytes:
    return json.dumps(document).encode("utf-8")


def test_parses_full_permission_target(permission_json):
    target = parse_permission_target(permission_json(False).encode("utf-8"))

    assert target.name == "java-developers"
    assert target.repo.include_patterns == ["**", "maven/**"]
    assert target.repo.exclude_patterns == [""]
    assert target.repo.repositories == ["local-rep1", "remote-rep1", "virtual-rep2"]
    assert target.repo.users == {
        "bob": [R, W, M],
        "alice": [W, R],
        "john": [R, W, M, D, N],
    }
    assert target.repo.groups == {"dev-leads": [R, W]}
    assert target.build is not None
    assert target.build.groups["dev-leads"] == [M, R, W, N, D]


def test_build_section_is_optional():
    target = parse_permission_target(
        _body({"repo": {"actions": {"users": {"bob": ["r"]}}}})
    )
    assert target.build is None
    assert target.name is None
    assert target.repo.include_patterns == ["**"]
    assert target.repo.groups == {}


@pytest.mark.parametrize(
    "body",
    [
        b"",
        b"{not json",
        b"\xff\xfe",
        b"[]",
        b'"repo"',
        _body({"name": "x"}),
        _body({"build": {"actions": {}}}),
        _body({"repo": {"include-patterns": ["**"]}}),
        _body({"repo": "maven"}),
        _body({"repo": {"include-patterns": "**", "actions": {}}}),
        _body({"repo": {"actions": {"users": {"bob": "read"}}}}),
        _body({"repo": {"actions": {"users": ["bob"]}}}),
        _body({"repo": {"actions": {"users": {"bob": [1]}}}}),
    ],
)
def test_rejects_malformed_payloads(body):
    with pytest.raises(ParseError):
        parse_permission_target(body)


def test_unknown_action_aborts_parsing():
    with pytest.raises(UnknownActionError):
        parse_permission_target(
            _body({"repo": {"actions": {"groups": {"devs": ["read", "deploy"]}}}})
        )


def test_unknown_action_in_build_section_aborts_parsing():
    with pytest.raises(UnknownActionError):
        parse_permission_target(
            _body(
                {
                    "repo": {"actions": {"users": {"bob": ["r"]}}},
                    "build": {"actions": {"users": {"bob": ["rw"]}}},
                }
            )
        )
