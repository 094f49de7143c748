"""Allele aggregation for popgen_stats.

Reduces a sample of individuals into per-marker allele tables:
  - resolve_samples: accept a list of individuals, a population, or a raw
    count, and resolve it ONCE into a SampleSet
  - allele_counts: marker -> {allele: occurrences}
  - allele_frequencies: marker -> {allele: fraction}

Markers are taken from the first individual. All individuals are assumed
to be genotyped at the same, aligned markers; this is not validated.
Allele tables keep first-observed order, which the adjacent-pair pi
traversal depends on.
"""

from __future__ import annotations

import logging
import numbers
from collections import Counter
from typing import Any, Dict, List, Optional, Sequence

from popgen_stats.types import (
    Allele,
    ComputeError,
    IndividualI,
    PopulationI,
    SampleKind,
    SampleSet,
    StatisticsError,
)

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════
# SAMPLE RESOLUTION
# ═══════════════════════════════════════════════════════════════════════

def resolve_samples(
    samples: Any,
    role: str = "samples",
    allow_count: bool = False,
) -> SampleSet:
    """Resolve a statistic argument into a SampleSet.

    Args:
        samples: List/tuple of IndividualI, a PopulationI, an existing
            SampleSet, or (if ``allow_count``) a plain number.
        role: Argument name used in error messages ('ingroup', 'outgroup'...).
        allow_count: Accept a raw number as a pre-computed count.

    Returns:
        SampleSet tagged with the input's SampleKind.

    Raises:
        StatisticsError: MISSING_OUTGROUP if an outgroup is None,
            TYPE_MISMATCH for any other unusable argument or list element.
    """
    if isinstance(samples, SampleSet):
        return samples
    if isinstance(samples, PopulationI):
        return SampleSet(kind=SampleKind.POPULATION, population=samples)
    if isinstance(samples, (list, tuple)):
        for i, ind in enumerate(samples):
            if not isinstance(ind, IndividualI):
                raise StatisticsError(
                    ComputeError.TYPE_MISMATCH,
                    f"{role}[{i}] is a {type(ind).__name__}, "
                    f"expected an IndividualI",
                )
        return SampleSet(kind=SampleKind.INDIVIDUALS, individuals=list(samples))
    if samples is None and role == "outgroup":
        raise StatisticsError(
            ComputeError.MISSING_OUTGROUP,
            "Need to provide either a list of outgroup individuals "
            "or the number of external mutations",
        )
    if (allow_count and isinstance(samples, numbers.Real)
            and not isinstance(samples, bool)):
        return SampleSet(kind=SampleKind.COUNT, count=samples)
    raise StatisticsError(
        ComputeError.TYPE_MISMATCH,
        f"{role} must be a list of IndividualI objects or a PopulationI, "
        f"got {type(samples).__name__}",
    )


# ═══════════════════════════════════════════════════════════════════════
# ALLELE TABLES
# ═══════════════════════════════════════════════════════════════════════

def allele_counts(
    sample_set: SampleSet,
    marker_names: Optional[Sequence[str]] = None,
) -> Dict[str, Counter]:
    """Count allele occurrences per marker across all individuals.

    Args:
        sample_set: Resolved individuals or population (with members).
        marker_names: Markers to scan. Defaults to the first individual's
            markers.

    Returns:
        Dict marker -> Counter(allele -> occurrences). The sum of a marker's
        counts equals the number of allele calls observed at that marker.

    Raises:
        StatisticsError: INSUFFICIENT_DATA if there are no individuals,
            TYPE_MISMATCH if a population member is not an IndividualI.
    """
    individuals = sample_set.member_individuals()
    if not individuals:
        raise StatisticsError(
            ComputeError.INSUFFICIENT_DATA,
            "Need a sample with individuals loaded, not just allele "
            "frequencies",
        )
    if not isinstance(individuals[0], IndividualI):
        raise StatisticsError(
            ComputeError.TYPE_MISMATCH,
            f"expected IndividualI members, got {type(individuals[0]).__name__}",
        )
    if marker_names is None:
        marker_names = individuals[0].marker_names()

    tables: Dict[str, Counter] = {m: Counter() for m in marker_names}
    for ind in individuals:
        if not isinstance(ind, IndividualI):
            raise StatisticsError(
                ComputeError.TYPE_MISMATCH,
                f"expected IndividualI members, got {type(ind).__name__}",
            )
        for marker in marker_names:
            table = tables[marker]
            for call in ind.genotypes(marker):
                for allele in call.alleles():
                    table[allele] += 1

    logger.debug(
        "aggregated %d individuals over %d markers",
        len(individuals), len(tables),
    )
    return tables


def normalize_counts(table: Dict[Allele, int]) -> Dict[Allele, float]:
    """Convert one marker's allele counts into fractions of the total."""
    total = sum(table.values())
    if total == 0:
        return {}
    return {allele: count / total for allele, count in table.items()}


def allele_frequencies(sample_set: SampleSet) -> Dict[str, Dict[Allele, float]]:
    """Per-marker allele frequency tables.

    A population carrying its own marker table is used as-is (no
    per-individual scan). Otherwise counts from allele_counts() are
    normalised by each marker's total number of calls.
    """
    if sample_set.kind == SampleKind.POPULATION:
        pop = sample_set.population
        if pop.has_marker_table():
            return {
                name: pop.allele_frequencies(name)
                for name in pop.marker_names()
            }
    counts = allele_counts(sample_set)
    return {marker: normalize_counts(table) for marker, table in counts.items()}


def marker_allele_lists(sample_set: SampleSet) -> Dict[str, List[Allele]]:
    """Distinct alleles per marker, in table order."""
    if sample_set.kind == SampleKind.POPULATION:
        return {m.name: m.alleles() for m in sample_set.population.markers()}
    return {m: list(t) for m, t in allele_counts(sample_set).items()}
