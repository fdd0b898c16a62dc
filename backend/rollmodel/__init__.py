"""Roll Model curriculum backend: skill graph, progress and recommendation engine."""
