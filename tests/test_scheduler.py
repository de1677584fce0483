"""Tests for the rank-ordered dirty queue and propagation."""

import logging

from cellflow import Cell, Expression, transaction
from cellflow._tracking import current_frame
from cellflow.scheduler import DirtyQueue, propagate


def _chain():
    c = Cell(1)
    e1 = Expression(lambda: c.get() + 1)
    e2 = Expression(lambda: e1.get() + 1)
    e2.get()
    return c, e1, e2


class TestDirtyQueue:
    def test_pops_lowest_rank_first(self):
        _, e1, e2 = _chain()
        q = DirtyQueue([e2, e1])
        assert q.pop() is e1
        assert q.pop() is e2
        assert not q

    def test_ties_break_by_creation_order(self):
        c = Cell(0)
        first = Expression(lambda: c.get())
        second = Expression(lambda: c.get())
        second.get()
        first.get()
        q = DirtyQueue([second, first])
        assert q.pop() is first
        assert q.pop() is second

    def test_no_duplicates(self):
        _, e1, _ = _chain()
        q = DirtyQueue()
        q.push(e1)
        q.push(e1)
        assert len(q) == 1
        assert e1 in q
        q.pop()
        assert e1 not in q


class TestPropagate:
    def test_cascades_changed_values(self):
        n = [0]
        source = Expression(lambda: n[0])
        dependent = Expression(lambda: source.get() + 1)
        dependent.get()

        n[0] = 5
        visited = propagate(DirtyQueue([source]))

        assert visited == [source, dependent]
        assert dependent.peek() == 6

    def test_cutoff_stops_cascade(self):
        n = [1]
        parity = Expression(lambda: n[0] % 2)
        dependent = Expression(lambda: parity.get() + 1)
        dependent.get()

        n[0] = 3
        visited = propagate(DirtyQueue([parity]))

        assert visited == [parity]

    def test_adds_no_edges_to_running_getter(self):
        probe = Expression(lambda: 1)
        outer = Expression(lambda: propagate(DirtyQueue([probe])))
        outer.get()
        assert outer.sources == frozenset()
        assert probe.sinks == frozenset()
        assert current_frame.get() is None

    def test_logs_pass_size(self, caplog):
        _, e1, _ = _chain()
        with caplog.at_level(logging.DEBUG, logger="cellflow.scheduler"):
            propagate(DirtyQueue([e1]))
        assert "Propagated 1 expression(s)" in caplog.text


class TestRankRaising:
    def test_requeued_node_moves_to_new_rank(self):
        _, e1, e2 = _chain()
        q = DirtyQueue([e1, e2])
        e1._rank = 3
        q.push(e1)
        assert len(q) == 2
        assert q.pop() is e2
        assert q.pop() is e1
        assert not q

    def test_unchanged_value_still_lifts_sink_ranks(self):
        a = Cell(1)
        d = Cell(0)
        flag = Cell(False)
        e1 = Expression(lambda: a.get())
        e2 = Expression(lambda: e1.get())
        e3 = Expression(lambda: e2.get())
        switch = Expression(lambda: e3.get() if flag.get() else a.get())
        pair = Expression(lambda: (switch.get(), d.get()))
        seen = []
        pair.add_watch("w", lambda key, source, old, new: seen.append(new))

        flag.set(True)  # switch now reads the deep chain, its value stays 1

        assert switch.rank == 4
        assert pair.rank == 5

        with transaction():
            a.set(2)
            d.set(1)

        assert seen == [(2, 1)]  # no (1, 1) in between
