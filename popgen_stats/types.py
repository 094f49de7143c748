"""Core data types for popgen_stats.

This module is the SINGLE SOURCE OF TRUTH for:
  - Capability contracts: IndividualI, GenotypeI, PopulationI
  - Concrete sample containers: Genotype, Individual, Marker, Population
  - SampleKind / SampleSet: the resolved shape of a statistic's input
  - ComputeError, StatisticsError, StatisticsWarning: error taxonomy

All statistic modules import these types from here.

References:
  - Fu Y.X. & Li W.H. (1993) Genetics 133:693-709
  - Tajima F. (1989) Genetics 123:585-595
"""

from __future__ import annotations

import functools
import warnings
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, Hashable, Iterable, List, Optional, Sequence, Tuple

import numpy as np


Allele = Hashable


# ═══════════════════════════════════════════════════════════════════════
# ENUMERATIONS & ERRORS
# ═══════════════════════════════════════════════════════════════════════

class SampleKind(IntEnum):
    """Shape of a resolved statistic input."""
    INDIVIDUALS = 0   # list of IndividualI
    POPULATION  = 1   # single PopulationI
    COUNT       = 2   # raw pre-computed integer (outgroup shortcut)


class ComputeError(IntEnum):
    """Reasons a statistic could not be computed."""
    MISSING_OUTGROUP       = 1
    INSUFFICIENT_DATA      = 2
    TYPE_MISMATCH          = 3
    DEGENERATE_SAMPLE_SIZE = 4


class StatisticsError(ValueError):
    """Raised when a statistic cannot be computed from its inputs.

    Attributes:
        kind: The ComputeError describing the failure.
    """

    def __init__(self, kind: ComputeError, message: str):
        super().__init__(message)
        self.kind = kind


class StatisticsWarning(UserWarning):
    """Non-fatal diagnostic emitted when a statistic falls back to 0."""


def zero_on_error(sentinel: Any = 0):
    """Decorate a statistic so StatisticsError becomes a warning + sentinel.

    A callable sentinel (e.g. ``list``) is called to build a fresh value.

    The wrapped function gains a keyword-only ``strict`` flag. With
    ``strict=True`` the StatisticsError propagates to the caller instead,
    so "could not compute" stays distinguishable from a genuine zero.

    Usage:
        @zero_on_error(0.0)
        def tajima_D(samples): ...
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, strict: bool = False, **kwargs):
            try:
                return func(*args, **kwargs)
            except StatisticsError as exc:
                if strict:
                    raise
                warnings.warn(
                    f"{func.__name__}: {exc} [{exc.kind.name}]",
                    StatisticsWarning,
                    stacklevel=2,
                )
                return sentinel() if callable(sentinel) else sentinel
        return wrapper
    return decorator


# ═══════════════════════════════════════════════════════════════════════
# CAPABILITY CONTRACTS
# ═══════════════════════════════════════════════════════════════════════

class GenotypeI(ABC):
    """A single genotype call at one marker."""

    @abstractmethod
    def alleles(self) -> Tuple[Allele, ...]:
        """Allele identifiers carried by this call."""


class IndividualI(ABC):
    """A sample member exposing genotype calls per marker."""

    @abstractmethod
    def marker_names(self) -> List[str]:
        """Names of the markers this individual was genotyped at."""

    @abstractmethod
    def genotypes(self, marker_name: Optional[str] = None) -> List[GenotypeI]:
        """Genotype calls at ``marker_name``, or every call when None."""


class PopulationI(ABC):
    """A pre-aggregated group of individuals and/or marker frequencies."""

    @abstractmethod
    def number_individuals(self) -> int:
        """Sample size used by the statistics."""

    @abstractmethod
    def marker_names(self) -> List[str]:
        """Names of the markers known to this population."""

    @abstractmethod
    def individuals(self) -> List[IndividualI]:
        """Member individuals; empty for a frequency-only population."""

    @abstractmethod
    def markers(self) -> List['Marker']:
        """Markers with their allele frequency maps."""

    def has_marker_table(self) -> bool:
        """True when allele frequencies are supplied directly."""
        return False

    def allele_frequencies(self, marker_name: str) -> Dict[Allele, float]:
        """Allele -> frequency map for one marker."""
        for marker in self.markers():
            if marker.name == marker_name:
                return dict(marker.allele_frequencies)
        raise KeyError(marker_name)


# ═══════════════════════════════════════════════════════════════════════
# CONCRETE CONTAINERS
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Genotype(GenotypeI):
    """One genotype call: a marker name and the alleles observed there."""
    marker_name: str
    allele_calls: Tuple[Allele, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, 'allele_calls', tuple(self.allele_calls))

    def alleles(self) -> Tuple[Allele, ...]:
        return self.allele_calls


@dataclass
class Individual(IndividualI):
    """A genotyped sample member.

    ``genotype_calls`` maps marker name to the list of calls made at that
    marker. Marker order is the insertion order of the mapping.
    """
    name: str = ""
    genotype_calls: Dict[str, List[Genotype]] = field(default_factory=dict)

    @classmethod
    def from_alleles(
        cls,
        name: str,
        alleles_by_marker: Dict[str, Iterable[Allele]],
    ) -> 'Individual':
        """Build an individual with one call per marker.

        Example:
            >>> ind = Individual.from_alleles('i1', {'m1': ('A', 'T')})
            >>> ind.genotypes('m1')[0].alleles()
            ('A', 'T')
        """
        calls = {
            marker: [Genotype(marker, tuple(alleles))]
            for marker, alleles in alleles_by_marker.items()
        }
        return cls(name=name, genotype_calls=calls)

    def marker_names(self) -> List[str]:
        return list(self.genotype_calls)

    def genotypes(self, marker_name: Optional[str] = None) -> List[Genotype]:
        if marker_name is None:
            return [g for calls in self.genotype_calls.values() for g in calls]
        return list(self.genotype_calls.get(marker_name, []))


@dataclass
class Marker:
    """A marker with its allele -> frequency map (fractions summing to 1)."""
    name: str
    allele_frequencies: Dict[Allele, float] = field(default_factory=dict)

    def alleles(self) -> List[Allele]:
        return list(self.allele_frequencies)


@dataclass
class Population(PopulationI):
    """A population of individuals, or of marker frequencies only.

    When ``marker_table`` is None the markers are derived from ``members``
    on demand. ``size`` overrides the member count, which is what a
    frequency-only population needs.
    """
    name: str = ""
    members: List[IndividualI] = field(default_factory=list)
    marker_table: Optional[List[Marker]] = None
    size: Optional[int] = None

    @classmethod
    def from_frequencies(
        cls,
        name: str,
        frequencies: Dict[str, Dict[Allele, float]],
        size: int,
    ) -> 'Population':
        """Build a frequency-only population of ``size`` individuals."""
        table = [Marker(m, dict(freqs)) for m, freqs in frequencies.items()]
        return cls(name=name, marker_table=table, size=size)

    def number_individuals(self) -> int:
        if self.size is not None:
            return self.size
        return len(self.members)

    def individuals(self) -> List[IndividualI]:
        return list(self.members)

    def has_marker_table(self) -> bool:
        return self.marker_table is not None

    def marker_names(self) -> List[str]:
        if self.marker_table is not None:
            return [m.name for m in self.marker_table]
        if not self.members:
            return []
        return self.members[0].marker_names()

    def markers(self) -> List[Marker]:
        if self.marker_table is not None:
            return list(self.marker_table)
        # aggregate imports this module, so import at call time
        from popgen_stats.aggregate import allele_frequencies, resolve_samples
        freqs = allele_frequencies(resolve_samples(list(self.members)))
        return [Marker(name, table) for name, table in freqs.items()]


# ═══════════════════════════════════════════════════════════════════════
# SAMPLE RESOLUTION RESULT
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class SampleSet:
    """A statistic input resolved once at the call boundary."""
    kind: SampleKind
    individuals: List[IndividualI] = field(default_factory=list)
    population: Optional[PopulationI] = None
    count: Optional[int] = None

    @property
    def sample_size(self) -> int:
        """Number of individuals in the sample (0 for a raw count)."""
        if self.kind == SampleKind.POPULATION:
            return self.population.number_individuals()
        if self.kind == SampleKind.INDIVIDUALS:
            return len(self.individuals)
        return 0

    def member_individuals(self) -> List[IndividualI]:
        """Individuals behind this sample, from either input shape."""
        if self.kind == SampleKind.POPULATION:
            return self.population.individuals()
        return list(self.individuals)


# ═══════════════════════════════════════════════════════════════════════
# ARRAY ADAPTER
# ═══════════════════════════════════════════════════════════════════════

def individuals_from_genotype_array(
    genotypes: np.ndarray,
    marker_names: Optional[Sequence[str]] = None,
    names: Optional[Sequence[str]] = None,
) -> List[Individual]:
    """Convert an (n_individuals, n_loci, ploidy) array into Individuals.

    Each locus becomes one genotype call carrying ``ploidy`` alleles, so a
    diploid int8 array of 0/1 allele states maps onto two-allele calls.

    Args:
        genotypes: (n, L, ploidy) integer array. A 2-D (n, L) array is
            treated as haploid.
        marker_names: Optional names for the L loci (default 'locus_<i>').
        names: Optional names for the n individuals (default 'ind_<i>').

    Returns:
        List of n Individual objects.

    Raises:
        ValueError: If the array is not 2-D or 3-D or if the name lists do
            not match its shape.
    """
    arr = np.asarray(genotypes)
    if arr.ndim == 2:
        arr = arr[:, :, np.newaxis]
    if arr.ndim != 3:
        raise ValueError(
            f"genotypes must have shape (n, loci, ploidy), got {arr.shape}"
        )
    n, n_loci, _ = arr.shape

    if marker_names is None:
        marker_names = [f"locus_{i}" for i in range(n_loci)]
    if names is None:
        names = [f"ind_{i}" for i in range(n)]
    if len(marker_names) != n_loci:
        raise ValueError(
            f"expected {n_loci} marker names, got {len(marker_names)}"
        )
    if len(names) != n:
        raise ValueError(f"expected {n} individual names, got {len(names)}")

    result: List[Individual] = []
    for i in range(n):
        calls: Dict[str, List[Genotype]] = {}
        for l_idx, marker in enumerate(marker_names):
            alleles: Tuple[Any, ...] = tuple(int(a) for a in arr[i, l_idx])
            calls[marker] = [Genotype(marker, alleles)]
        result.append(Individual(name=names[i], genotype_calls=calls))
    return result
