"""popgen_stats: population-genetics summary statistics and neutrality tests.

Computes, from genotyped individuals or pre-aggregated allele frequencies:
  - Segregating sites, singletons and external (outgroup-polarised) mutations
  - Heterozygosity, nucleotide diversity pi and Watterson's theta
  - Tajima's D and Fu & Li's D, D*, F, F*

Modules:
  types       capability contracts, sample containers, error taxonomy
  aggregate   per-marker allele tables
  sites       site counts
  diversity   heterozygosity, pi, theta
  neutrality  neutrality tests and the combined summary
  config      YAML configuration
"""

__version__ = "0.1.0"
