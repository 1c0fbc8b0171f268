# implicit/__init__.py
# Implicit-equation nodes: F(z, p) = 0 solved for z, differentiable in p

from .exceptions import (
    RootfinderError,
    ConfigurationError,
    StructuralSingularity,
    ConvergenceFailure,
    LinearSolveError,
)
from .config import Constraint, RootfinderOptions, NewtonOptions, parse_constraints
from .plugins import Plugin, PluginRegistry
from .sparsity import Sparsity
from .function import FunctionBase, Function, JacobianFunction
from .linsol import LinearSolver, SpluSolver, DenseSolver, linsol_plugins, linear_solver
from .ring import NumericRing, BooleanRing
from .rootfinder import (
    Rootfinder,
    rootfinder,
    rootfinder_plugins,
    register_rootfinder,
    has_rootfinder,
    load_rootfinder,
    doc_rootfinder,
)

# Registers the "newton" plugin
from . import newton
from .newton import Newton

__all__ = [
    'RootfinderError', 'ConfigurationError', 'StructuralSingularity',
    'ConvergenceFailure', 'LinearSolveError',
    'Constraint', 'RootfinderOptions', 'NewtonOptions', 'parse_constraints',
    'Plugin', 'PluginRegistry',
    'Sparsity',
    'FunctionBase', 'Function', 'JacobianFunction',
    'LinearSolver', 'SpluSolver', 'DenseSolver', 'linsol_plugins', 'linear_solver',
    'NumericRing', 'BooleanRing',
    'Rootfinder', 'rootfinder', 'rootfinder_plugins', 'register_rootfinder',
    'has_rootfinder', 'load_rootfinder', 'doc_rootfinder',
    'Newton',
]
