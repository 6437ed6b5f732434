"""Tests for the source vs staged count comparison."""

from domains.mirror_hub.core.consistency import describe_mismatch, is_consistent
from domains.mirror_hub.core.models import GraphCounts, MirrorCounts


def test_equal_counts_are_consistent():
    assert is_consistent(GraphCounts(3, 1), MirrorCounts(notes=3, typed_links=1, targets=9, resolved_links=9))


def test_targets_and_resolutions_are_ignored():
    assert is_consistent(GraphCounts(3, 1), MirrorCounts(notes=3, typed_links=1))


def test_any_difference_is_inconsistent():
    assert not is_consistent(GraphCounts(3, 5), MirrorCounts(notes=3, typed_links=4))
    assert not is_consistent(GraphCounts(3, 5), MirrorCounts(notes=2, typed_links=5))


def test_describe_mismatch_embeds_both_sides():
    message = describe_mismatch(GraphCounts(3, 5), MirrorCounts(notes=3, typed_links=4))
    assert "typed_links=5" in message
    assert "typed_links=4" in message
