"""HTTP surface of the solver."""
