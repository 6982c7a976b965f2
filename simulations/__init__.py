# simulations/__init__.py
"""
Monte Carlo experiments estimating e-related probabilities with different
sample sequences.

Run the full report via:
    python -m simulations.report --generators white,golden_ratio --experiments lottery,sum,candidates
"""
