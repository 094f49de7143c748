"""Site statistics for popgen_stats.

Counts derived from the per-marker allele tables:
  - Segregating sites: markers with more than one distinct allele
  - Singletons: (marker, allele) pairs observed exactly once
  - External mutations: ingroup singletons matching a monomorphic outgroup

Every public function accepts a list of IndividualI, a PopulationI or a
resolved SampleSet. On bad input they warn and return 0, or raise
StatisticsError when called with ``strict=True``.
"""

from __future__ import annotations

import logging
from typing import Any, List

from popgen_stats.aggregate import (
    allele_counts,
    marker_allele_lists,
    resolve_samples,
)
from popgen_stats.types import (
    SampleKind,
    SampleSet,
    zero_on_error,
)

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════
# SEGREGATING SITES
# ═══════════════════════════════════════════════════════════════════════

def _segregating_sites(sample_set: SampleSet) -> List[str]:
    # Population markers are already aggregated; lists are checked directly
    alleles = marker_allele_lists(sample_set)
    return [marker for marker, observed in alleles.items() if len(observed) > 1]


def _segregating_sites_count(sample_set: SampleSet) -> int:
    return len(_segregating_sites(sample_set))


@zero_on_error(list)
def segregating_sites(samples: Any) -> List[str]:
    """Names of the polymorphic markers, in marker order.

    Args:
        samples: Individuals or population.

    Returns:
        List of marker names with more than one distinct allele.
    """
    return _segregating_sites(resolve_samples(samples))


@zero_on_error(0)
def segregating_sites_count(samples: Any) -> int:
    """Number of segregating (polymorphic) sites.

    Args:
        samples: Individuals or population.

    Returns:
        Count of markers with more than one distinct allele observed.
    """
    return _segregating_sites_count(resolve_samples(samples))


# ═══════════════════════════════════════════════════════════════════════
# SINGLETONS
# ═══════════════════════════════════════════════════════════════════════

def _singleton_count(sample_set: SampleSet) -> int:
    # Needs raw calls: a frequency-only population raises INSUFFICIENT_DATA
    tables = allele_counts(sample_set)
    return sum(
        1
        for table in tables.values()
        for count in table.values()
        if count == 1
    )


@zero_on_error(0)
def singleton_count(samples: Any) -> int:
    """Number of alleles seen exactly once across the sample, over all markers.

    A population exposing only allele frequencies has no per-individual
    calls to count, so it produces a StatisticsWarning and 0.
    """
    return _singleton_count(resolve_samples(samples))


# ═══════════════════════════════════════════════════════════════════════
# EXTERNAL MUTATIONS
# ═══════════════════════════════════════════════════════════════════════

def _external_mutations(ingroup: SampleSet, outgroup: SampleSet) -> int:
    if outgroup.kind == SampleKind.COUNT:
        return outgroup.count

    in_tables = allele_counts(ingroup)
    # Outgroup is read at the ingroup's markers; alignment is assumed
    out_tables = allele_counts(outgroup, marker_names=list(in_tables))

    external = 0
    for marker, in_table in in_tables.items():
        out_table = out_tables[marker]
        if len(out_table) > 1:
            continue
        for allele, count in in_table.items():
            if count == 1 and allele in out_table:
                external += 1

    logger.debug("external mutations: %d", external)
    return external


@zero_on_error(0)
def external_mutations(ingroup: Any, outgroup: Any) -> int:
    """Count external (outgroup-polarised) mutations.

    An ingroup allele is counted when it occurs exactly once in the ingroup
    at a marker where the outgroup carries at most one distinct allele and
    that allele is present in the outgroup.

    Args:
        ingroup: Individuals or population under study.
        outgroup: Individuals or population used for polarisation, or a
            pre-computed count which is returned unchanged.

    Returns:
        Number of external mutations.
    """
    out = resolve_samples(outgroup, role="outgroup", allow_count=True)
    if out.kind == SampleKind.COUNT:
        return out.count
    return _external_mutations(resolve_samples(ingroup, role="ingroup"), out)
