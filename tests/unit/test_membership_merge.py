"""Unit tests for membership merging"""

from splitez.domain.membership import merge_membership, normalize_email, parse_emails
from splitez.domain.models import Group


def make_group(**overrides) -> Group:
    fields = dict(
        group_id="g1",
        name="Trip",
        created_by="owner",
        members={"owner"},
        member_emails={"a@x.com", "b@x.com"},
        pending_emails={"a@x.com", "b@x.com"},
    )
    fields.update(overrides)
    return Group(**fields)


def test_normalize_and_parse_emails():
    assert normalize_email("  Alice@Example.COM ") == "alice@example.com"
    assert parse_emails(["A@x.com", " a@x.com", "", "b@x.com "]) == ["A@x.com", "b@x.com"]


def test_promotes_only_matched_pending_email():
    resolution = merge_membership(make_group(), {"a@x.com": "acc_a"})

    assert resolution.group.members == {"owner", "acc_a"}
    assert resolution.group.pending_emails == {"b@x.com"}
    assert resolution.promoted_emails == {"a@x.com"}
    assert resolution.added_members == {"acc_a"}
    assert resolution.changed


def test_merge_is_idempotent():
    first = merge_membership(make_group(), {"a@x.com": "acc_a"})
    second = merge_membership(first.group, {"a@x.com": "acc_a"})

    assert second.group.members == first.group.members
    assert second.group.pending_emails == {"b@x.com"}
    assert not second.changed


def test_merge_is_order_independent():
    group = make_group(pending_emails={"a@x.com", "b@x.com", "c@x.com"})
    matches = {"a@x.com": "acc_a", "c@x.com": "acc_c"}

    forward = merge_membership(group, dict(sorted(matches.items())))
    backward = merge_membership(group, dict(sorted(matches.items(), reverse=True)))

    assert forward.group.members == backward.group.members == {"owner", "acc_a", "acc_c"}
    assert forward.group.pending_emails == backward.group.pending_emails == {"b@x.com"}


def test_same_account_promoted_twice_is_one_member():
    group = make_group(pending_emails={"a@x.com", "A@X.com"})
    resolution = merge_membership(group, {"a@x.com": "acc_a", "A@X.com": "acc_a"})

    assert resolution.group.members == {"owner", "acc_a"}
    assert resolution.group.pending_emails == set()


def test_failed_lookup_stays_pending():
    resolution = merge_membership(make_group(), {"a@x.com": "acc_a"}, failed=["b@x.com"])

    assert resolution.group.pending_emails == {"b@x.com"}
    assert resolution.failed_emails == {"b@x.com"}
    assert resolution.partial


def test_known_member_email_adds_missing_member():
    group = make_group(member_emails={"z@x.com"}, pending_emails=set())
    resolution = merge_membership(group, {"z@x.com": "acc_z"})

    assert resolution.group.members == {"owner", "acc_z"}
    assert resolution.added_members == {"acc_z"}
    assert resolution.promoted_emails == set()


def test_promotion_records_normalized_email():
    group = make_group(member_emails=set(), pending_emails={"Legacy@X.com"})
    resolution = merge_membership(group, {"Legacy@X.com": "acc_l"})

    assert "legacy@x.com" in resolution.group.member_emails
    assert resolution.group.pending_emails == set()


def test_original_group_is_not_mutated():
    group = make_group()
    merge_membership(group, {"a@x.com": "acc_a"})

    assert group.members == {"owner"}
    assert group.pending_emails == {"a@x.com", "b@x.com"}
