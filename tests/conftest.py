"""Shared sample fixtures for popgen_stats tests."""

import pytest

from popgen_stats.types import Individual, Population


def make_individuals(columns):
    """Build haploid individuals from {marker: [allele per individual]}."""
    markers = list(columns)
    n = len(columns[markers[0]])
    return [
        Individual.from_alleles(
            f"ind_{i}", {m: (columns[m][i],) for m in markers}
        )
        for i in range(n)
    ]


@pytest.fixture
def three_individuals():
    """m1 carries {A, A, T}; m2 is fixed for G."""
    return make_individuals({
        'm1': ['A', 'A', 'T'],
        'm2': ['G', 'G', 'G'],
    })


@pytest.fixture
def ingroup():
    """Four individuals, two segregating markers, one singleton (T at m1)."""
    return make_individuals({
        'm1': ['A', 'A', 'A', 'T'],
        'm2': ['G', 'G', 'C', 'C'],
        'm3': ['A', 'A', 'A', 'A'],
    })


@pytest.fixture
def outgroup():
    """One outgroup individual fixed for the ingroup singleton at m1."""
    return make_individuals({
        'm1': ['T'],
        'm2': ['G'],
        'm3': ['A'],
    })


@pytest.fixture
def frequency_population():
    """Ten individuals known only through marker allele frequencies."""
    return Population.from_frequencies(
        'freq_only',
        {'m1': {'A': 0.5, 'T': 0.5}, 'm2': {'G': 1.0}},
        size=10,
    )
