"""Tests for re-windowing a flat history into offset-addressed pages."""

import pytest

from chatfeed.feed.pages import FeedView, build_pages, flatten

from factories import msgs


def test_pages_cut_from_the_tail():
    pages, cursors = build_pages(msgs(1, 2, 3, 4, 5, 6, 7), total=7, page_size=3)
    assert [[m.id for m in p.messages] for p in pages] == [[5, 6, 7], [2, 3, 4], [1]]
    assert cursors == [0, 3, 6]


def test_only_oldest_page_carries_has_more():
    pages, _ = build_pages(msgs(1, 2, 3, 4), total=4, page_size=2)
    assert [p.has_more for p in pages] == [True, False]


def test_has_more_from_total():
    pages, _ = build_pages(msgs(5, 6), total=10, page_size=50)
    assert pages[-1].has_more is True


def test_has_more_override_wins():
    pages, _ = build_pages(msgs(5, 6), total=10, page_size=50, has_more=False)
    assert pages[-1].has_more is False


def test_total_is_copied_to_every_page():
    pages, _ = build_pages(msgs(1, 2, 3, 4, 5), total=42, page_size=2)
    assert {p.total for p in pages} == {42}


def test_empty_input_keeps_one_empty_page():
    pages, cursors = build_pages([], total=5, page_size=3)
    assert cursors == [0]
    assert len(pages) == 1
    assert pages[0].messages == []
    assert pages[0].total == 5
    assert pages[0].has_more is True


def test_empty_input_honours_has_more_override():
    pages, _ = build_pages([], total=5, page_size=3, has_more=False)
    view = FeedView(chat_id=1, pages=pages, cursors=[0])
    assert view.total == 5
    assert view.has_more is False
    assert view.count == 0


def test_rejects_non_positive_page_size():
    with pytest.raises(ValueError):
        build_pages(msgs(1), total=1, page_size=0)


@pytest.mark.parametrize("count,page_size", [(1, 1), (7, 3), (9, 3), (10, 50), (120, 50)])
def test_round_trip(count, page_size):
    messages = msgs(*range(1, count + 1))
    pages, _ = build_pages(messages, total=count + 5, page_size=page_size)
    assert flatten(pages) == messages


@pytest.mark.parametrize("count,page_size", [(7, 3), (120, 50)])
def test_rebuild_is_idempotent(count, page_size):
    messages = msgs(*range(1, count + 1))
    first = build_pages(messages, total=200, page_size=page_size)
    second = build_pages(flatten(first[0]), total=200, page_size=page_size)
    assert first == second


def test_feed_view_properties():
    pages, cursors = build_pages(msgs(1, 2, 3, 4), total=9, page_size=3)
    view = FeedView(chat_id=1, pages=pages, cursors=cursors)
    assert [m.id for m in view.messages] == [1, 2, 3, 4]
    assert view.total == 9
    assert view.has_more is True
    assert view.count == 4


def test_empty_feed_view():
    view = FeedView(chat_id=1)
    assert view.messages == []
    assert view.total == 0
    assert view.has_more is False
    assert view.oldest_has_more is None
