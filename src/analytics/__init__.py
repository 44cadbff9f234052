"""
Analytics primitives
====================
Small, pure building blocks used by the aggregation engine and the
dashboard composer.

Modules:
  streaks     - consecutive-day goal streaks
  trends      - first-half vs second-half trend classification
  correlation - bounded Pearson coefficient
  deficiency  - consistent nutrient deficiencies / excesses
"""
