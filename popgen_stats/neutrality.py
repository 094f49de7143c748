"""Neutrality tests for popgen_stats.

Implements:
  - Tajima's D (Tajima 1989)
  - Fu and Li's D and F, polarised with an outgroup (Fu & Li 1993)
  - Fu and Li's D* and F*, using singletons instead of an outgroup
  - NeutralitySummary: every statistic from one set of shared aggregates

Each test exists at two levels:
  - *_from_counts(n, ...): the closed-form formula on summary counts.
    Unguarded: n ≤ 2 or zero denominators give inf/NaN.
  - sample-level (tajima_D, fu_and_li_D, ...): derives n, pi, S,
    singletons and external mutations from individuals or a population.
    S ≤ 0 or a missing outgroup warns and returns 0 (or raises with
    ``strict=True``).

Coefficient notation (n = sample size):
  a   = Σ_{k=1}^{n-1} 1/k        b = Σ_{k=1}^{n-1} 1/k²
  a'  = Σ_{k=1}^{n} 1/k          (a_{n+1})
  c   = 2 (n a − 2(n−1)) / ((n−1)(n−2))                     eq (14)
  d   = c + (n−2)/(n−1)² + 2/(n−1) (3/2 − (2a' − 3)/(n−2) − 1/n)   eq (46)

References:
  - Fu Y.X. & Li W.H. (1993) Genetics 133:693-709
  - Fu Y.X. (1996) Genetics 143:557-570
  - Tajima F. (1989) Genetics 123:585-595
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from typing import Any, Optional

import numpy as np

from popgen_stats.aggregate import resolve_samples
from popgen_stats.config import StatisticsConfig, default_config
from popgen_stats.diversity import _pi, _theta, harmonic_a1, harmonic_a2
from popgen_stats.sites import (
    _external_mutations,
    _segregating_sites_count,
    _singleton_count,
)
from popgen_stats.types import (
    ComputeError,
    StatisticsError,
    StatisticsWarning,
    zero_on_error,
)

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════
# COEFFICIENTS
# ═══════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class FuLiCoefficients:
    """Sample-size-dependent constants shared by the Fu & Li tests."""
    n: np.float64
    a: np.float64        # a_n
    a_next: np.float64   # a_{n+1}
    b: np.float64        # b_n
    c: np.float64        # c_n, eq (14)
    d: np.float64        # d_n, eq (46)


def fu_li_coefficients(sample_size: int) -> FuLiCoefficients:
    """Compute a, a_{n+1}, b, c and d for sample size n."""
    n = np.float64(sample_size)
    a = harmonic_a1(sample_size)
    a_next = harmonic_a1(sample_size + 1)
    b = harmonic_a2(sample_size)
    with np.errstate(divide='ignore', invalid='ignore'):
        c = 2.0 * ((n * a - 2.0 * (n - 1.0)) / ((n - 1.0) * (n - 2.0)))
        d = (c + (n - 2.0) / (n - 1.0) ** 2
             + 2.0 / (n - 1.0)
             * (1.5 - (2.0 * a_next - 3.0) / (n - 2.0) - 1.0 / n))
    return FuLiCoefficients(n=n, a=a, a_next=a_next, b=b, c=c, d=d)


# ═══════════════════════════════════════════════════════════════════════
# COUNT-LEVEL FORMULAS
# ═══════════════════════════════════════════════════════════════════════


def tajima_D_from_counts(sample_size: int, pi: float, seg_sites: float) -> float:
    """Tajima's D = (π − S/a1) / sqrt(e1 S + e2 S (S − 1)).

    Args:
        sample_size: n.
        pi: Average number of pairwise differences.
        seg_sites: Number of segregating sites S.

    Returns:
        D (float).
    """
    n = np.float64(sample_size)
    s = np.float64(seg_sites)
    a1 = harmonic_a1(sample_size)
    a2 = harmonic_a2(sample_size)
    with np.errstate(divide='ignore', invalid='ignore'):
        b1 = (n + 1.0) / (3.0 * (n - 1.0))
        b2 = (2.0 * (n ** 2 + n + 3.0)) / ((9.0 * n) * (n - 1.0))
        c1 = b1 - 1.0 / a1
        c2 = b2 - (n + 2.0) / (a1 * n) + a2 / a1 ** 2
        e1 = c1 / a1
        e2 = c2 / (a1 ** 2 + a2)
        D = (pi - s / a1) / np.sqrt(e1 * s + (e2 * s) * (s - 1.0))
    return float(D)


def fu_and_li_D_from_counts(
    sample_size: int,
    seg_sites: float,
    ext_mutations: float,
) -> float:
    """Fu and Li's D = (S − a η_e) / sqrt(u_D S + v_D S²)."""
    k = fu_li_coefficients(sample_size)
    n, a, b, c = k.n, k.a, k.b, k.c
    s = np.float64(seg_sites)
    with np.errstate(divide='ignore', invalid='ignore'):
        v = 1.0 + (a ** 2 / (b + a ** 2)) * (c - (n + 1.0) / (n - 1.0))
        u = a - 1.0 - v
        D = (s - a * ext_mutations) / np.sqrt(u * s + v * s ** 2)
    return float(D)


def fu_and_li_D_star_from_counts(
    sample_size: int,
    seg_sites: float,
    singletons: float,
) -> float:
    """Fu and Li's D* = (n/(n−1) S − a η_s) / sqrt(u* S + v* S²)."""
    k = fu_li_coefficients(sample_size)
    n, a, b, d = k.n, k.a, k.b, k.d
    s = np.float64(seg_sites)
    with np.errstate(divide='ignore', invalid='ignore'):
        ratio = n / (n - 1.0)
        v_star = ((ratio ** 2) * b + (a ** 2) * d
                  - 2.0 * (n * a * (a + 1.0)) / ((n - 1.0) ** 2)) / (a ** 2 + b)
        u_star = ratio * (a - ratio) - v_star
        D_star = (ratio * s - a * singletons) / np.sqrt(u_star * s + v_star * s ** 2)
    return float(D_star)


def fu_and_li_F_from_counts(
    sample_size: int,
    pi: float,
    seg_sites: float,
    ext_mutations: float,
) -> float:
    """Fu and Li's F = (π − η_e) / sqrt(u_F S + v_F S²).

    The bracketed u_F term is divided by (a − v_F) as a whole.
    """
    k = fu_li_coefficients(sample_size)
    n, a, a_next, b, c = k.n, k.a, k.a_next, k.b, k.c
    s = np.float64(seg_sites)
    with np.errstate(divide='ignore', invalid='ignore'):
        v_F = (c + (2.0 * (n ** 2 + n + 3.0)) / ((9.0 * n) * (n - 1.0))
               - 2.0 / (n - 1.0)) / (a ** 2 + b)
        u_F = (1.0 + (n + 1.0) / (3.0 * (n - 1.0))
               - 4.0 * ((n + 1.0) / (n - 1.0) ** 2)
               * (a_next - (2.0 * n) / (n + 1.0))) / (a - v_F)
        F = (pi - ext_mutations) / np.sqrt(u_F * s + v_F * s ** 2)
    return float(F)


def fu_and_li_F_star_from_counts(
    sample_size: int,
    pi: float,
    seg_sites: float,
    singletons: float,
) -> float:
    """Fu and Li's F* = (π − (n−1)/n η_s) / sqrt(u_F* S + v_F* S²)."""
    k = fu_li_coefficients(sample_size)
    n, a, a_next, b, d = k.n, k.a, k.a_next, k.b, k.d
    s = np.float64(seg_sites)
    with np.errstate(divide='ignore', invalid='ignore'):
        v_F_star = (d + 2.0 * (n ** 2 + n + 3.0) / (9.0 * n * (n - 1.0))
                    - (2.0 / (n - 1.0)) * (4.0 * b - 6.0 + 8.0 / n)) / (a ** 2 + b)
        u_F_star = (n / (n - 1.0)
                    + (n + 1.0) / (3.0 * (n - 1.0))
                    - 2.0 * (2.0 / (n * (n - 1.0)))
                    + 2.0 * ((n + 1.0) / (n - 1.0) ** 2)
                    * (a_next - (2.0 * n) / (n + 1.0))) / (a - v_F_star)
        F_star = ((pi - ((n - 1.0) / n) * singletons)
                  / np.sqrt(u_F_star * s + v_F_star * s ** 2))
    return float(F_star)


# ═══════════════════════════════════════════════════════════════════════
# SAMPLE-LEVEL TESTS
# ═══════════════════════════════════════════════════════════════════════


def _require_segregating(seg_sites: int, statistic: str) -> None:
    if seg_sites <= 0:
        raise StatisticsError(
            ComputeError.INSUFFICIENT_DATA,
            f"mutation total was not > 0, cannot calculate {statistic}",
        )


@zero_on_error(0.0)
def tajima_D(samples: Any) -> float:
    """Tajima's D for a set of individuals or a population.

    Args:
        samples: Individuals or population.

    Returns:
        D (float). 0 with a StatisticsWarning when S ≤ 0.
    """
    sample_set = resolve_samples(samples)
    seg_sites = _segregating_sites_count(sample_set)
    _require_segregating(seg_sites, "Tajima's D")
    return tajima_D_from_counts(sample_set.sample_size, _pi(sample_set), seg_sites)


tajima_d = tajima_D


@zero_on_error(0.0)
def fu_and_li_D(ingroup: Any, outgroup: Any = None) -> float:
    """Fu and Li's D with an outgroup.

    Args:
        ingroup: Individuals or population under study.
        outgroup: Outgroup individuals/population, or the number of
            external mutations.

    Returns:
        D (float).
    """
    out = resolve_samples(outgroup, role="outgroup", allow_count=True)
    sample_set = resolve_samples(ingroup, role="ingroup")
    seg_sites = _segregating_sites_count(sample_set)
    _require_segregating(seg_sites, "Fu and Li's D")
    ext = _external_mutations(sample_set, out)
    return fu_and_li_D_from_counts(sample_set.sample_size, seg_sites, ext)


@zero_on_error(0.0)
def fu_and_li_D_star(samples: Any) -> float:
    """Fu and Li's D* (no outgroup; uses the singleton count)."""
    sample_set = resolve_samples(samples)
    seg_sites = _segregating_sites_count(sample_set)
    _require_segregating(seg_sites, "Fu and Li's D*")
    singletons = _singleton_count(sample_set)
    return fu_and_li_D_star_from_counts(sample_set.sample_size, seg_sites, singletons)


@zero_on_error(0.0)
def fu_and_li_F(ingroup: Any, outgroup: Any = None) -> float:
    """Fu and Li's F with an outgroup or a count of external mutations."""
    out = resolve_samples(outgroup, role="outgroup", allow_count=True)
    sample_set = resolve_samples(ingroup, role="ingroup")
    seg_sites = _segregating_sites_count(sample_set)
    _require_segregating(seg_sites, "Fu and Li's F")
    ext = _external_mutations(sample_set, out)
    return fu_and_li_F_from_counts(
        sample_set.sample_size, _pi(sample_set), seg_sites, ext
    )


@zero_on_error(0.0)
def fu_and_li_F_star(samples: Any) -> float:
    """Fu and Li's F* (no outgroup; uses the singleton count)."""
    sample_set = resolve_samples(samples)
    seg_sites = _segregating_sites_count(sample_set)
    _require_segregating(seg_sites, "Fu and Li's F*")
    singletons = _singleton_count(sample_set)
    return fu_and_li_F_star_from_counts(
        sample_set.sample_size, _pi(sample_set), seg_sites, singletons
    )


# ═══════════════════════════════════════════════════════════════════════
# SUMMARY
# ═══════════════════════════════════════════════════════════════════════


@dataclass
class NeutralitySummary:
    """Summary statistics and neutrality tests for one sample."""

    sample_size: int = 0
    segregating_sites: int = 0
    singletons: Optional[int] = None          # None: frequency-only input
    external_mutations: Optional[int] = None  # None: no outgroup given

    # Diversity (per site when the config asks for it)
    pi: float = 0.0
    theta: float = 0.0

    # Neutrality tests (None when their inputs are unavailable)
    tajima_D: float = 0.0
    fu_and_li_D: Optional[float] = None
    fu_and_li_D_star: Optional[float] = None
    fu_and_li_F: Optional[float] = None
    fu_and_li_F_star: Optional[float] = None


def _report(exc: StatisticsError, strict: bool) -> None:
    if strict:
        raise exc
    warnings.warn(f"{exc} [{exc.kind.name}]", StatisticsWarning, stacklevel=3)


def compute_neutrality_summary(
    samples: Any,
    outgroup: Any = None,
    config: Optional[StatisticsConfig] = None,
) -> NeutralitySummary:
    """Compute every statistic from one pass of aggregation.

    pi, S and singletons are computed once and shared by all tests.
    Statistics needing an outgroup are left as None when none is given;
    D* and F* are None when the input has no per-individual calls.

    Args:
        samples: Individuals or population.
        outgroup: Optional outgroup individuals/population or count.
        config: StatisticsConfig (default: default_config()).

    Returns:
        NeutralitySummary.

    Raises:
        StatisticsError: Only when ``config.errors.strict`` is True.
    """
    if config is None:
        config = default_config()
    strict = config.errors.strict
    summary = NeutralitySummary()

    try:
        sample_set = resolve_samples(samples)
    except StatisticsError as exc:
        _report(exc, strict)
        return summary

    n = sample_set.sample_size
    summary.sample_size = n
    if n < config.errors.warn_min_sample_size:
        _report(StatisticsError(
            ComputeError.DEGENERATE_SAMPLE_SIZE,
            f"sample size {n} < {config.errors.warn_min_sample_size}; "
            f"coefficients may be non-finite",
        ), strict)

    try:
        seg_sites = _segregating_sites_count(sample_set)
        raw_pi = _pi(sample_set, pairing=config.diversity.pi_pairing)
    except StatisticsError as exc:
        _report(exc, strict)
        return summary

    summary.segregating_sites = seg_sites
    if config.diversity.numsites:
        summary.pi = raw_pi / config.diversity.numsites
    else:
        summary.pi = raw_pi
    summary.theta = _theta(n, seg_sites, config.diversity.totalsites)

    if sample_set.member_individuals():
        try:
            summary.singletons = _singleton_count(sample_set)
        except StatisticsError as exc:
            _report(exc, strict)

    if outgroup is not None:
        try:
            out = resolve_samples(outgroup, role="outgroup", allow_count=True)
            summary.external_mutations = _external_mutations(sample_set, out)
        except StatisticsError as exc:
            _report(exc, strict)

    if seg_sites <= 0:
        _report(StatisticsError(
            ComputeError.INSUFFICIENT_DATA,
            "mutation total was not > 0, neutrality tests set to 0",
        ), strict)
        summary.tajima_D = 0.0
        if summary.singletons is not None:
            summary.fu_and_li_D_star = 0.0
            summary.fu_and_li_F_star = 0.0
        if summary.external_mutations is not None:
            summary.fu_and_li_D = 0.0
            summary.fu_and_li_F = 0.0
        return summary

    summary.tajima_D = tajima_D_from_counts(n, raw_pi, seg_sites)
    if summary.singletons is not None:
        summary.fu_and_li_D_star = fu_and_li_D_star_from_counts(
            n, seg_sites, summary.singletons)
        summary.fu_and_li_F_star = fu_and_li_F_star_from_counts(
            n, raw_pi, seg_sites, summary.singletons)
    if summary.external_mutations is not None:
        summary.fu_and_li_D = fu_and_li_D_from_counts(
            n, seg_sites, summary.external_mutations)
        summary.fu_and_li_F = fu_and_li_F_from_counts(
            n, raw_pi, seg_sites, summary.external_mutations)

    logger.debug("neutrality summary: %s", summary)
    return summary
