from __future__ import annotations

from site_harvest.frontier import Frontier, FrontierItem


def test_seed_is_depth_zero_and_visited():
    frontier = Frontier(max_depth=2)
    assert frontier.seed("https://example.com/")
    assert "https://example.com/" in frontier.visited
    assert frontier.dequeue() == FrontierItem("https://example.com/", 0)
    assert not frontier.has_work()
    assert frontier.dequeue() is None


def test_enqueue_marks_visited_and_rejects_duplicates():
    frontier = Frontier(max_depth=2)
    assert frontier.enqueue("https://example.com/a", 1)
    assert not frontier.enqueue("https://example.com/a", 1)
    assert not frontier.enqueue("https://example.com/a", 2)
    assert len(frontier) == 1


def test_visited_urls_are_never_requeued_after_dequeue():
    frontier = Frontier(max_depth=2)
    frontier.seed("https://example.com/")
    frontier.dequeue()
    assert not frontier.enqueue("https://example.com/", 1)


def test_fifo_order():
    frontier = Frontier(max_depth=3)
    frontier.seed("https://example.com/")
    frontier.enqueue("https://example.com/a", 1)
    frontier.enqueue("https://example.com/b", 1)
    frontier.enqueue("https://example.com/a/1", 2)
    order = []
    while frontier.has_work():
        order.append(frontier.dequeue().url)
    assert order == [
        "https://example.com/",
        "https://example.com/a",
        "https://example.com/b",
        "https://example.com/a/1",
    ]


def test_depth_limit():
    frontier = Frontier(max_depth=1)
    assert not frontier.enqueue("https://example.com/deep", 2)
    assert "https://example.com/deep" not in frontier.visited
    assert frontier.can_expand(FrontierItem("https://example.com/", 0))
    assert not frontier.can_expand(FrontierItem("https://example.com/a", 1))
