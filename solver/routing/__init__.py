"""Route sources.

A route source quotes a swap (target, calldata and expected output) together
with the output token's value in native wei.

Module structure:
- route.py: Route dataclass and the RouteSolver protocol
- zero_ex.py: 0x swap API adapter
"""

from solver.routing.route import Route, RouteSolver
from solver.routing.zero_ex import ZeroExRouteSolver

__all__ = ["Route", "RouteSolver", "ZeroExRouteSolver"]
