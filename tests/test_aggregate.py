"""Tests for popgen_stats.aggregate — sample resolution and allele tables."""

import logging

import numpy as np
import pytest

from popgen_stats.aggregate import (
    allele_counts,
    allele_frequencies,
    marker_allele_lists,
    normalize_counts,
    resolve_samples,
)
from popgen_stats.types import (
    ComputeError,
    Genotype,
    Individual,
    Marker,
    Population,
    PopulationI,
    SampleKind,
    SampleSet,
    StatisticsError,
)


# ── resolve_samples ───────────────────────────────────────────────────

class TestResolveSamples:
    def test_list(self, three_individuals):
        ss = resolve_samples(three_individuals)
        assert ss.kind == SampleKind.INDIVIDUALS
        assert ss.sample_size == 3

    def test_tuple(self, three_individuals):
        ss = resolve_samples(tuple(three_individuals))
        assert ss.kind == SampleKind.INDIVIDUALS
        assert ss.individuals == three_individuals

    def test_population(self, frequency_population):
        ss = resolve_samples(frequency_population)
        assert ss.kind == SampleKind.POPULATION
        assert ss.population is frequency_population

    def test_sample_set_passthrough(self, three_individuals):
        ss = resolve_samples(three_individuals)
        assert resolve_samples(ss) is ss

    def test_count_only_when_allowed(self):
        ss = resolve_samples(7, role="outgroup", allow_count=True)
        assert ss.kind == SampleKind.COUNT
        assert ss.count == 7
        with pytest.raises(StatisticsError) as excinfo:
            resolve_samples(7)
        assert excinfo.value.kind == ComputeError.TYPE_MISMATCH

    def test_bool_is_not_a_count(self):
        with pytest.raises(StatisticsError) as excinfo:
            resolve_samples(True, role="outgroup", allow_count=True)
        assert excinfo.value.kind == ComputeError.TYPE_MISMATCH

    def test_missing_outgroup(self):
        with pytest.raises(StatisticsError) as excinfo:
            resolve_samples(None, role="outgroup", allow_count=True)
        assert excinfo.value.kind == ComputeError.MISSING_OUTGROUP

    def test_none_samples_is_type_mismatch(self):
        with pytest.raises(StatisticsError) as excinfo:
            resolve_samples(None)
        assert excinfo.value.kind == ComputeError.TYPE_MISMATCH

    def test_bad_list_element(self, three_individuals):
        with pytest.raises(StatisticsError, match=r"samples\[3\]") as excinfo:
            resolve_samples(three_individuals + ["not an individual"])
        assert excinfo.value.kind == ComputeError.TYPE_MISMATCH

    def test_string_rejected(self):
        with pytest.raises(StatisticsError, match="ingroup"):
            resolve_samples("AATG", role="ingroup")


# ── allele_counts ─────────────────────────────────────────────────────

class TestAlleleCounts:
    def test_counts(self, three_individuals):
        tables = allele_counts(resolve_samples(three_individuals))
        assert tables == {'m1': {'A': 2, 'T': 1}, 'm2': {'G': 3}}

    def test_first_observed_order(self):
        inds = [
            Individual.from_alleles('i0', {'m1': ('C',)}),
            Individual.from_alleles('i1', {'m1': ('A',)}),
            Individual.from_alleles('i2', {'m1': ('C',)}),
        ]
        tables = allele_counts(resolve_samples(inds))
        assert list(tables['m1']) == ['C', 'A']

    def test_total_equals_calls(self):
        """Counts sum to the number of allele calls, not 2 × sample size."""
        inds = [
            Individual(name='i0', genotype_calls={
                'm1': [Genotype('m1', ('A', 'T')), Genotype('m1', ('A',))],
            }),
            Individual.from_alleles('i1', {'m1': ('T',)}),
        ]
        tables = allele_counts(resolve_samples(inds))
        assert sum(tables['m1'].values()) == 4

    def test_markers_from_first_individual(self):
        inds = [
            Individual.from_alleles('i0', {'m1': ('A',)}),
            Individual.from_alleles('i1', {'m1': ('T',), 'extra': ('G',)}),
        ]
        tables = allele_counts(resolve_samples(inds))
        assert list(tables) == ['m1']

    def test_explicit_marker_names(self, three_individuals):
        tables = allele_counts(resolve_samples(three_individuals), ['m2'])
        assert list(tables) == ['m2']

    def test_population_members(self, three_individuals):
        pop = Population(name='p', members=three_individuals)
        tables = allele_counts(resolve_samples(pop))
        assert tables['m1'] == {'A': 2, 'T': 1}

    def test_frequency_only_population(self, frequency_population):
        with pytest.raises(StatisticsError) as excinfo:
            allele_counts(resolve_samples(frequency_population))
        assert excinfo.value.kind == ComputeError.INSUFFICIENT_DATA

    def test_empty_list(self):
        with pytest.raises(StatisticsError) as excinfo:
            allele_counts(SampleSet(kind=SampleKind.INDIVIDUALS))
        assert excinfo.value.kind == ComputeError.INSUFFICIENT_DATA

    def test_bad_population_member(self, three_individuals):
        pop = Population(name='p', members=three_individuals + [42])
        with pytest.raises(StatisticsError) as excinfo:
            allele_counts(resolve_samples(pop))
        assert excinfo.value.kind == ComputeError.TYPE_MISMATCH

    def test_deterministic(self, ingroup):
        """Aggregating the same sample twice gives identical tables."""
        first = allele_counts(resolve_samples(ingroup))
        second = allele_counts(resolve_samples(ingroup))
        assert first == second
        assert all(list(first[m]) == list(second[m]) for m in first)

    def test_logs_debug(self, three_individuals, caplog):
        with caplog.at_level(logging.DEBUG, logger="popgen_stats.aggregate"):
            allele_counts(resolve_samples(three_individuals))
        assert any("aggregated 3 individuals over 2 markers" in rec.message
                   for rec in caplog.records)


# ── Frequencies ───────────────────────────────────────────────────────

class LookupPopulation(PopulationI):
    """Frequency-only population that serves lookups per marker."""

    def __init__(self):
        self.lookups = []

    def number_individuals(self):
        return 6

    def marker_names(self):
        return ['m1']

    def individuals(self):
        return []

    def markers(self):
        return [Marker('m1', {'A': 1 / 3, 'T': 2 / 3})]

    def has_marker_table(self):
        return True

    def allele_frequencies(self, marker_name):
        self.lookups.append(marker_name)
        return super().allele_frequencies(marker_name)


class TestAlleleFrequencies:
    def test_normalize(self):
        assert normalize_counts({'A': 3, 'T': 1}) == {'A': 0.75, 'T': 0.25}

    def test_normalize_empty(self):
        assert normalize_counts({}) == {}

    def test_individuals(self, three_individuals):
        freqs = allele_frequencies(resolve_samples(three_individuals))
        assert np.isclose(freqs['m1']['A'], 2 / 3)
        assert np.isclose(freqs['m1']['T'], 1 / 3)
        assert freqs['m2'] == {'G': 1.0}

    def test_frequencies_sum_to_one(self, ingroup):
        freqs = allele_frequencies(resolve_samples(ingroup))
        for table in freqs.values():
            assert np.isclose(sum(table.values()), 1.0)

    def test_population_table_used_directly(self, frequency_population):
        freqs = allele_frequencies(resolve_samples(frequency_population))
        assert freqs == {'m1': {'A': 0.5, 'T': 0.5}, 'm2': {'G': 1.0}}

    def test_population_lookup_per_marker(self):
        pop = LookupPopulation()
        freqs = allele_frequencies(resolve_samples(pop))
        assert pop.lookups == ['m1']
        assert np.isclose(freqs['m1']['T'], 2 / 3)

    def test_population_without_table_scans_members(self, three_individuals):
        pop = Population(name='p', members=three_individuals)
        from_pop = allele_frequencies(resolve_samples(pop))
        from_list = allele_frequencies(resolve_samples(three_individuals))
        assert from_pop == from_list


class TestMarkerAlleleLists:
    def test_individuals(self, three_individuals):
        lists = marker_allele_lists(resolve_samples(three_individuals))
        assert lists == {'m1': ['A', 'T'], 'm2': ['G']}

    def test_population(self, frequency_population):
        lists = marker_allele_lists(resolve_samples(frequency_population))
        assert lists == {'m1': ['A', 'T'], 'm2': ['G']}
