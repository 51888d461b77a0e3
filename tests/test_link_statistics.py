"""Tests for LinkStatistics: link ingestion, summarization and the link table."""

import io
import logging

import pandas as pd
import pytest

from coexlinks.core.entities import ExpressionExperiment, Gene, GeneLink
from coexlinks.exceptions import ReportWriteError, UnknownExperimentError
from coexlinks.stats import link_statistics
from coexlinks.stats.link_statistics import LinkStatistics


def read_table(path):
    return pd.read_csv(path, sep="\t", dtype={"Gene1": str, "Gene2": str})


@pytest.fixture
def scenario(experiments, genes):
    """
    Three experiments over genes A-D:
      GSE1: A-B (+0.5), B-C (-0.3)
      GSE2: A-B (+0.4)
      GSE3: A-B (+0.6) reported twice
    """
    stats = LinkStatistics(experiments, genes)
    e1, e2, e3 = experiments
    applied = [
        stats.add_links([GeneLink(1, 2, 0.5), GeneLink(2, 3, -0.3)], e1),
        stats.add_links([GeneLink(1, 2, 0.4)], e2),
        stats.add_links([GeneLink(1, 2, 0.6), GeneLink(1, 2, 0.6)], e3),
    ]
    return stats, applied


class TestAddLinks:
    """Link ingestion."""

    def test_counts_applied_links(self, scenario):
        stats, applied = scenario
        assert applied == [2, 1, 2]

    def test_support_per_sign(self, scenario):
        stats, _ = scenario
        pos, neg = stats.pos_link_counts, stats.neg_link_counts
        assert pos.bit_count(pos.row_index(1), pos.col_index(2)) == 3
        assert neg.bit_count(neg.row_index(2), neg.col_index(3)) == 1
        assert stats.get_total_link_count() == 4

    def test_self_links_never_recorded(self, experiments, genes):
        stats = LinkStatistics(experiments, genes)
        assert stats.add_links([GeneLink(1, 1, 0.9), GeneLink(2, 2, -0.9)], experiments[0]) == 0
        assert stats.get_total_link_count() == 0

    def test_missing_genes_skipped_with_warning(self, experiments, genes, caplog):
        stats = LinkStatistics(experiments, genes)
        links = [GeneLink(1, 2, 0.5), GeneLink(1, 99, 0.5), GeneLink(42, 3, -0.5), GeneLink(3, 3, 0.1)]
        with caplog.at_level(logging.WARNING, logger="coexlinks.stats.link_statistics"):
            applied = stats.add_links(links, experiments[0])
        # 4 links - 1 self pair - 2 missing-axis pairs
        assert applied == 1
        assert sum("does not contain" in r.message for r in caplog.records) == 2

    def test_zero_score_counts_as_negative(self, experiments, genes):
        stats = LinkStatistics(experiments, genes)
        stats.add_links([GeneLink(1, 2, 0.0)], experiments[0])
        assert stats.neg_link_counts.total_bit_count() == 1
        assert stats.pos_link_counts.total_bit_count() == 0

    def test_distinct_links_counted_exactly(self, experiments, genes):
        stats = LinkStatistics(experiments, genes)
        links = [GeneLink(a, b, 0.3) for a in range(1, 5) for b in range(1, 5) if a != b]
        for ee in experiments:
            stats.add_links(links, ee)
        assert stats.get_total_link_count() == len(links) * len(experiments)

    def test_unknown_experiment_is_fatal(self, experiments, genes):
        stats = LinkStatistics(experiments, genes)
        stranger = ExpressionExperiment(id=999, short_name="GSE999")
        with pytest.raises(UnknownExperimentError):
            stats.add_links([GeneLink(1, 2, 0.5)], stranger)

    def test_gene_coverage(self, scenario):
        stats, _ = scenario
        assert stats.gene_coverage == {1, 2, 3}
        assert stats.get_gene_ids() == {1, 2, 3, 4}


class TestConfirmationStats:
    """Summarization into support histograms."""

    def test_scenario_histograms(self, scenario):
        stats, _ = scenario
        conf = stats.get_link_confirmation_stats()
        assert conf.pos_counts == {3: 1}
        assert conf.neg_counts == {1: 1}

    def test_orientation_kept_separate(self, experiments, genes):
        """A-B in one experiment and B-A in another are two cells of support 1."""
        stats = LinkStatistics(experiments, genes)
        stats.add_links([GeneLink(1, 2, 0.5)], experiments[0])
        stats.add_links([GeneLink(2, 1, 0.5)], experiments[1])
        assert stats.get_link_confirmation_stats().pos_counts == {1: 2}


class TestWriteLinks:
    """The tab-delimited link report."""

    def test_stringency_two_scenario(self, scenario, tmp_path):
        stats, _ = scenario
        path = tmp_path / "links.txt"
        assert stats.write_links(path, 2) == 1
        assert path.read_text() == "Gene1\tGene2\tSupport\tCorrSign\nA\tB\t3\t+\n"

    def test_unfiltered_one_row_per_cell(self, scenario, tmp_path):
        stats, _ = scenario
        path = tmp_path / "links.txt"
        assert stats.write_links(path, 0) == 2
        table = read_table(path)
        assert list(table.columns) == ["Gene1", "Gene2", "PosLinks", "NegLinks"]
        rows = {(r.Gene1, r.Gene2): (r.PosLinks, r.NegLinks) for r in table.itertuples()}
        assert rows == {("A", "B"): (3, 0), ("B", "C"): (0, 1)}

    def test_both_signs_in_one_cell(self, experiments, genes, tmp_path):
        stats = LinkStatistics(experiments, genes)
        stats.add_links([GeneLink(3, 4, 0.5)], experiments[0])
        stats.add_links([GeneLink(3, 4, 0.5)], experiments[1])
        stats.add_links([GeneLink(3, 4, -0.5)], experiments[2])

        path = tmp_path / "unfiltered.txt"
        stats.write_links(path, 0)
        assert path.read_text().splitlines()[1:] == ["C\tD\t2\t1"]

        path = tmp_path / "filtered.txt"
        assert stats.write_links(path, 1) == 2
        assert path.read_text().splitlines()[1:] == ["C\tD\t2\t+", "C\tD\t1\t-"]

    def test_filtered_never_below_threshold(self, scenario, tmp_path):
        stats, _ = scenario
        path = tmp_path / "links.txt"
        stats.write_links(path, 4)
        assert path.read_text().splitlines() == ["Gene1\tGene2\tSupport\tCorrSign"]

    def test_negative_stringency_rejected(self, scenario, tmp_path):
        stats, _ = scenario
        with pytest.raises(ValueError):
            stats.write_links(tmp_path / "x.txt", -1)

    def test_stream_is_closed(self, scenario, tmp_path):
        stats, _ = scenario
        handle = open(tmp_path / "links.txt", "w")
        stats.write_links(handle, 0)
        assert handle.closed

    def test_unwritable_path(self, scenario, tmp_path):
        stats, _ = scenario
        with pytest.raises(ReportWriteError):
            stats.write_links(tmp_path / "missing" / "links.txt", 0)

    def test_names_fall_back_to_ids(self, experiments, tmp_path):
        stats = LinkStatistics(experiments, [Gene(7), Gene(8)])
        stats.add_links([GeneLink(7, 8, 0.5)], experiments[0])
        path = tmp_path / "links.txt"
        stats.write_links(path, 0)
        assert path.read_text().splitlines()[1] == "7\t8\t1\t0"


class FailingStream(io.StringIO):
    """Accepts `allowed` writes, then raises OSError."""

    def __init__(self, allowed):
        super().__init__()
        self.allowed = allowed

    def write(self, text):
        if self.allowed == 0:
            raise OSError("disk full")
        self.allowed -= 1
        return super().write(text)


class TestWriteFailures:
    """The sink is closed however writing ends."""

    def test_negative_stringency_closes_stream(self, scenario):
        stats, _ = scenario
        sink = io.StringIO()
        with pytest.raises(ValueError):
            stats.write_links(sink, -1)
        assert sink.closed

    def test_failure_mid_stream(self, scenario):
        stats, _ = scenario
        # header and one row go through
        sink = FailingStream(allowed=2)
        with pytest.raises(ReportWriteError, match="after 1 rows"):
            stats.write_links(sink, 0)
        assert sink.closed
        assert stats.rows_written == 1


class TestProgressLogging:
    """Progress cadence, with intervals shrunk to fit the four-gene fixture."""

    def messages(self, caplog):
        return [r.message for r in caplog.records]

    def test_summary_interval(self, scenario, caplog, monkeypatch):
        stats, _ = scenario
        monkeypatch.setattr(link_statistics, "SUMMARY_LOG_INTERVAL", 2)
        with caplog.at_level(logging.INFO, logger="coexlinks.stats.link_statistics"):
            stats.get_link_confirmation_stats()
        messages = self.messages(caplog)
        assert "Summarized results for 2 genes, 2 links." in messages
        assert not any(m.startswith("Summarized results for 1 genes") for m in messages)
        assert any(m.startswith("Summarized results for 4 genes, 2 links in") for m in messages)

    def test_write_intervals(self, scenario, caplog, monkeypatch, tmp_path):
        stats, _ = scenario
        monkeypatch.setattr(link_statistics, "WRITE_ROW_LOG_INTERVAL", 2)
        monkeypatch.setattr(link_statistics, "WRITE_LINK_LOG_INTERVAL", 1)
        with caplog.at_level(logging.INFO, logger="coexlinks.stats.link_statistics"):
            stats.write_links(tmp_path / "links.txt", 0)
        messages = self.messages(caplog)
        # one row each from A and B, then the closing total
        assert [m for m in messages if m.endswith("links written")] == [
            "1 links written", "2 links written", "2 links written",
        ]
        assert [m for m in messages if m.startswith("Links for")] == ["Links for 2 genes written"]
