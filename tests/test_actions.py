import pytest

from management_api.domain.actions import ALL_ACTIONS, normalize_action, normalize_actions
from management_api.domain.errors import UnknownActionError
from management_api.domain.models import CanonicalAction


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("r", CanonicalAction.READ),
        ("read", CanonicalAction.READ),
        ("w", CanonicalAction.WRITE),
        ("write", CanonicalAction.WRITE),
        ("m", CanonicalAction.MANAGE),
        ("manage", CanonicalAction.MANAGE),
        ("d", CanonicalAction.DELETE),
        ("delete", CanonicalAction.DELETE),
        ("n", CanonicalAction.ANNOTATE),
        ("annotate", CanonicalAction.ANNOTATE),
    ],
)
def test_single_tokens_map_to_one_action(raw, expected):
    assert normalize_action(raw) == frozenset({expected})


def test_admin_expands_to_every_action():
    assert normalize_action("admin") == ALL_ACTIONS
    assert len(ALL_ACTIONS) == 5


@pytest.mark.parametrize("raw", ["READ", "x", "", "execute", "*"])
def test_unknown_tokens_are_rejected(raw):
    with pytest.raises(UnknownActionError):
        normalize_action(raw)


def test_non_string_token_is_rejected():
    with pytest.raises(UnknownActionError):
        normalize_action(1)


def test_normalize_actions_keeps_first_seen_order_without_duplicates():
    assert normalize_actions(["w", "read", "write", "r"]) == [
        CanonicalAction.WRITE,
        CanonicalAction.READ,
    ]


def test_normalize_actions_expands_admin_in_canonical_order():
    assert normalize_actions(["manage", "admin"]) == [
        CanonicalAction.MANAGE,
        CanonicalAction.READ,
        CanonicalAction.WRITE,
        CanonicalAction.DELETE,
        CanonicalAction.ANNOTATE,
    ]


def test_normalize_actions_fails_on_any_unknown_token():
    with pytest.raises(UnknownActionError) as exc_info:
        normalize_actions(["read", "bogus"])
    assert exc_info.value.action == "bogus"
