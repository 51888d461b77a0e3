"""Tests for link confirmation statistics and the background report."""

import io

import numpy as np
import pandas as pd
import pytest

from coexlinks.stats.confirmation import (
    LinkConfirmationStatistics,
    summarize_background,
    write_background_report,
)


def make_stats(pos=None, neg=None):
    stats = LinkConfirmationStatistics()
    for support, n in (pos or {}).items():
        for _ in range(n):
            stats.add_pos(support)
    for support, n in (neg or {}).items():
        for _ in range(n):
            stats.add_neg(support)
    return stats


class TestLinkConfirmationStatistics:
    """Append-only support histograms."""

    def test_empty(self):
        stats = LinkConfirmationStatistics()
        assert stats.total == 0
        assert stats.max_support == 0
        assert stats.pos_counts == {}
        assert stats.to_frame().empty

    def test_single_additions(self):
        stats = make_stats(pos={3: 2, 1: 1}, neg={2: 1})
        assert stats.pos_count(3) == 2
        assert stats.pos_count(2) == 0
        assert stats.neg_count(2) == 1
        assert stats.total_pos == 3
        assert stats.total_neg == 1
        assert stats.total == 4
        assert stats.max_support == 3

    def test_batch_additions_match_single(self):
        batch = LinkConfirmationStatistics()
        batch.add_pos_counts(np.array([1, 3, 3, 2]))
        batch.add_neg_counts(np.array([], dtype=np.int32))
        single = make_stats(pos={1: 1, 2: 1, 3: 2})
        assert batch.pos_counts == single.pos_counts
        assert batch.neg_counts == {}

    def test_non_positive_support_rejected(self):
        stats = LinkConfirmationStatistics()
        with pytest.raises(ValueError):
            stats.add_pos(0)
        with pytest.raises(ValueError):
            stats.add_neg(-2)
        with pytest.raises(ValueError):
            stats.add_pos_counts(np.array([1, 0]))

    def test_cumulative_counts(self):
        stats = make_stats(pos={1: 5, 2: 3, 4: 1}, neg={1: 2})
        assert stats.cumulative_pos(1) == 9
        assert stats.cumulative_pos(2) == 4
        assert stats.cumulative_pos(3) == 1
        assert stats.cumulative_neg(2) == 0

    def test_to_frame(self):
        stats = make_stats(pos={1: 5, 3: 1}, neg={2: 2})
        frame = stats.to_frame()
        assert frame.index.name == "support"
        assert frame.index.tolist() == [1, 2, 3]
        assert frame["pos"].tolist() == [5, 0, 1]
        assert frame["cum_pos"].tolist() == [6, 1, 1]
        assert frame["cum_neg"].tolist() == [2, 2, 0]

    def test_write(self):
        stats = make_stats(pos={1: 1}, neg={1: 1})
        out = io.StringIO()
        stats.write(out)
        lines = out.getvalue().splitlines()
        assert lines[0] == "# Total links: 2 (1 positive, 1 negative)"
        assert lines[1].split("\t") == ["support", "pos", "neg", "cum_pos", "cum_neg"]


class TestBackgroundSummary:
    """Real vs. shuffled comparison."""

    def test_fdr_from_shuffled_mean(self):
        real = make_stats(pos={1: 10, 2: 10}, neg={1: 4})
        runs = [make_stats(pos={1: 2}), make_stats(pos={1: 4, 2: 2})]
        summary = summarize_background(real, runs)

        assert summary.loc[1, "real_pos"] == 20
        assert summary.loc[1, "shuffled_pos_mean"] == pytest.approx(4.0)
        assert summary.loc[1, "fdr_pos"] == pytest.approx(0.2)
        assert summary.loc[2, "fdr_pos"] == pytest.approx(0.1)
        assert summary.loc[1, "fdr_neg"] == pytest.approx(0.0)
        assert np.isnan(summary.loc[2, "fdr_neg"])

    def test_without_real(self):
        summary = summarize_background(None, [make_stats(pos={2: 1})])
        assert summary["real_pos"].isna().all()
        assert summary["fdr_pos"].isna().all()
        assert summary.loc[1, "shuffled_pos_mean"] == 1.0
        # one run: population sd
        assert summary.loc[1, "shuffled_pos_sd"] == 0.0

    def test_without_runs(self):
        summary = summarize_background(make_stats(pos={1: 1}), [])
        assert summary["shuffled_pos_mean"].isna().all()
        assert summary.index.tolist() == [1]

    def test_report(self):
        out = io.StringIO()
        real = make_stats(pos={1: 3}, neg={1: 1})
        summary = write_background_report(out, real, [make_stats(pos={1: 1})])
        text = out.getvalue()
        assert text.startswith("# Shuffled iterations: 1\n# Real links: 3 positive, 1 negative\n")
        table = pd.read_csv(io.StringIO(text), sep="\t", comment="#", index_col=0)
        assert table["real_pos"].tolist() == summary["real_pos"].tolist()

    def test_report_without_real(self):
        out = io.StringIO()
        write_background_report(out, None, [])
        assert "# Real links: not computed" in out.getvalue()
