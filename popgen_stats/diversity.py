"""Diversity statistics for popgen_stats.

Implements:
  - Harmonic coefficients a1 = Σ 1/k and a2 = Σ 1/k² (k = 1..n-1)
  - Unbiased two-allele heterozygosity  n(1 − (p² + q²)) / (n − 1)
  - Nucleotide diversity pi (adjacent-pair traversal)
  - pi_all_pairs: true expected heterozygosity over every allele pair
  - Watterson's theta  S / a1

pi pairs each allele with the NEXT allele in table order. For bi-allelic
markers that is the full heterozygosity; for markers with 3+ alleles only
consecutive pairs contribute. pi_all_pairs is the separately named
variant that sums over all C(k, 2) pairs with weight 2·n/(n−1).

Arithmetic is float64 so that degenerate sample sizes (n ≤ 1) give inf
or NaN rather than raising.

References:
  - Tajima F. (1989) Genetics 123:585-595
  - Watterson G.A. (1975) Theor. Popul. Biol. 7:256-276
"""

from __future__ import annotations

import itertools
import logging
import numbers
import warnings
from typing import Any, Dict, Optional

import numpy as np

from popgen_stats.aggregate import allele_frequencies, resolve_samples
from popgen_stats.sites import _segregating_sites_count
from popgen_stats.types import (
    Allele,
    ComputeError,
    SampleSet,
    StatisticsError,
    StatisticsWarning,
    zero_on_error,
)

logger = logging.getLogger(__name__)

PI_PAIRINGS = ("adjacent", "all_pairs")


# ═══════════════════════════════════════════════════════════════════════
# HARMONIC COEFFICIENTS
# ═══════════════════════════════════════════════════════════════════════


def harmonic_a1(n: int) -> np.float64:
    """a1 = Σ_{k=1}^{n-1} 1/k. Zero for n ≤ 1."""
    return np.sum(1.0 / np.arange(1, int(n), dtype=np.float64))


def harmonic_a2(n: int) -> np.float64:
    """a2 = Σ_{k=1}^{n-1} 1/k². Zero for n ≤ 1."""
    k = np.arange(1, int(n), dtype=np.float64)
    return np.sum(1.0 / (k * k))


# ═══════════════════════════════════════════════════════════════════════
# HETEROZYGOSITY
# ═══════════════════════════════════════════════════════════════════════


def heterozygosity(
    sample_size: int,
    freq1: float,
    freq2: Optional[float] = None,
) -> float:
    """Sample heterozygosity for a pair of allele frequencies.

    H = n × (1 − (p² + q²)) / (n − 1)

    Args:
        sample_size: Number of sampled individuals n.
        freq1: Frequency p of one allele.
        freq2: Frequency q of another allele. Defaults to 1 − p, the
            bi-allelic case.

    Returns:
        H (float). n == 1 gives inf or NaN; the caller must guard.
    """
    if freq2 is None:
        freq2 = 1.0 - freq1
    if freq1 > 1 or freq2 > 1:
        warnings.warn(
            "heterozygosity expects frequencies to be less than 1",
            StatisticsWarning,
            stacklevel=2,
        )
    n = np.float64(sample_size)
    with np.errstate(divide='ignore', invalid='ignore'):
        h = n * (1.0 - (freq1 ** 2 + freq2 ** 2)) / (n - 1.0)
    return float(h)


# ═══════════════════════════════════════════════════════════════════════
# NUCLEOTIDE DIVERSITY
# ═══════════════════════════════════════════════════════════════════════


def _marker_pi_adjacent(n: int, table: Dict[Allele, float]) -> float:
    alleles = list(table)
    total = sum(table.values())
    if total == 0:
        return 0.0
    return sum(
        heterozygosity(n, table[a] / total, table[b] / total)
        for a, b in zip(alleles, alleles[1:])
    )


def _marker_pi_all_pairs(n: int, table: Dict[Allele, float]) -> float:
    total = sum(table.values())
    if total == 0:
        return 0.0
    freqs = [f / total for f in table.values()]
    expected = sum(2.0 * p * q for p, q in itertools.combinations(freqs, 2))
    nf = np.float64(n)
    with np.errstate(divide='ignore', invalid='ignore'):
        return float(nf * expected / (nf - 1.0))


def _pi(
    sample_set: SampleSet,
    numsites: Optional[int] = None,
    pairing: str = "adjacent",
) -> float:
    if pairing not in PI_PAIRINGS:
        raise ValueError(
            f"pairing must be one of {PI_PAIRINGS}, got '{pairing}'"
        )
    marker_pi = _marker_pi_adjacent if pairing == "adjacent" else _marker_pi_all_pairs

    n = sample_set.sample_size
    freqs = allele_frequencies(sample_set)
    total = 0.0
    for table in freqs.values():
        total += marker_pi(n, table)

    logger.debug("pi=%s over %d markers (%s)", total, len(freqs), pairing)
    if numsites:
        return total / numsites
    return total


@zero_on_error(0.0)
def pi(samples: Any, numsites: Optional[int] = None) -> float:
    """Nucleotide diversity: heterozygosity summed over markers.

    Allele frequencies come from scanning every individual's calls (counts
    normalised by the marker total) or, for a population with a marker
    table, straight from its frequency maps.

    A zero second frequency in an adjacent pair is used as 0, not replaced
    by 1 − p as some older implementations do.

    Args:
        samples: Individuals or population.
        numsites: Optional total number of sites; when given, pi per site
            is returned.

    Returns:
        pi (float), ≥ 0 for valid frequencies.
    """
    return _pi(resolve_samples(samples), numsites)


@zero_on_error(0.0)
def pi_all_pairs(samples: Any, numsites: Optional[int] = None) -> float:
    """Nucleotide diversity summed over ALL allele pairs at each marker.

    Per marker: n/(n−1) × Σ_{i<j} 2 p_i p_j. Equals pi() on bi-allelic data.
    """
    return _pi(resolve_samples(samples), numsites, pairing="all_pairs")


# ═══════════════════════════════════════════════════════════════════════
# WATTERSON'S THETA
# ═══════════════════════════════════════════════════════════════════════


def _theta(sample_size: int, seg_sites: float, totalsites: Optional[int] = None) -> float:
    a1 = harmonic_a1(sample_size)
    s = np.float64(seg_sites)
    if totalsites:
        s = s / totalsites
    with np.errstate(divide='ignore', invalid='ignore'):
        return float(s / a1)


@zero_on_error(0.0)
def theta(
    sample_size: Any,
    seg_sites: Optional[float] = None,
    totalsites: Optional[int] = None,
) -> float:
    """Watterson's estimator θ_W = S / a1.

    Two call shapes:
      theta(sample_size, seg_sites, totalsites=None)
      theta(samples, totalsites=None)

    With a sample as the first argument, the second argument is read as
    ``totalsites`` and S is counted from the sample. The keyword form
    theta(sample_size=5, seg_sites=10) is the count shape.

    Args:
        sample_size: Sample size n, or individuals/population.
        seg_sites: S, or total sites when a sample is given.
        totalsites: Total sites; if non-zero, S is divided by it first
            (θ per site).

    Returns:
        θ_W (float).
    """
    first = sample_size
    if isinstance(first, numbers.Real) and not isinstance(first, bool):
        if seg_sites is None:
            raise StatisticsError(
                ComputeError.TYPE_MISMATCH,
                "theta(sample_size, seg_sites) needs a segregating site count",
            )
        return _theta(first, seg_sites, totalsites)

    # second positional argument is totalsites in the sample shape
    if totalsites is None:
        totalsites = seg_sites
    sample_set = resolve_samples(first)
    count = _segregating_sites_count(sample_set)
    return _theta(sample_set.sample_size, count, totalsites)
