"""Core computational modules for cellgraph.

This package contains the analysis engines:
- graph: dimensionality reduction, nearest-neighbour search, SNN/KNN
  graph construction and graph clustering
"""
