import pytest

from aad_rootfinder.implicit import (
    ConfigurationError,
    Constraint,
    Function,
    Newton,
    NewtonOptions,
    PluginRegistry,
    RootfinderOptions,
    doc_rootfinder,
    has_rootfinder,
    load_rootfinder,
    parse_constraints,
    rootfinder,
)


def test_registry_lookup():
    reg = PluginRegistry("widget")

    def make():
        """Makes a widget."""

    reg.register("w", make)
    assert "w" in reg and reg.has("w")
    assert reg.get("w") is make
    assert reg.doc("w") == "Makes a widget."
    with pytest.raises(ConfigurationError, match="already registered"):
        reg.register("w", make)
    with pytest.raises(ConfigurationError, match=r"Available: \['w'\]"):
        reg.load("v")


def test_newton_is_registered():
    assert has_rootfinder("newton")
    assert not has_rootfinder("kinsol")
    assert load_rootfinder("newton") is Newton
    assert "Newton" in doc_rootfinder("newton")


def test_unknown_solver_is_configuration_error():
    F = Function("F", lambda z: [z * z - 2.0], [1])
    with pytest.raises(ConfigurationError, match="No rootfinder plugin named 'broyden'"):
        rootfinder("S", "broyden", F)


def test_options_from_dict():
    opts = NewtonOptions.from_dict({"max_iter": 7, "linear_solver": "dense"})
    assert opts.max_iter == 7 and opts.linear_solver == "dense"
    assert opts.abstol == 1e-12 and opts.implicit_input == 0
    assert RootfinderOptions.from_dict(None) == RootfinderOptions()
    with pytest.raises(ConfigurationError, match="Unknown option"):
        RootfinderOptions.from_dict({"abstol": 1e-6})
    with pytest.raises(ConfigurationError):
        NewtonOptions(max_iter=0)


def test_constraint_codes():
    assert Constraint.POSITIVE.strict and Constraint.POSITIVE.sign == 1
    assert not Constraint.NONPOSITIVE.strict and Constraint.NONPOSITIVE.sign == -1
    codes = parse_constraints(["free", ">=0", 2, -1, "<0"], 5)
    assert codes.tolist() == [0, 1, 2, -1, -2]
    assert parse_constraints([], 3) is None
    assert parse_constraints(None, 3) is None


def test_constraint_errors():
    with pytest.raises(ConfigurationError, match="must be of length n, but got 2 and n = 3"):
        parse_constraints([1, 1], 3)
    with pytest.raises(ConfigurationError, match="Unknown constraint code"):
        parse_constraints([3], 1)
    with pytest.raises(ConfigurationError, match="Unknown constraint"):
        parse_constraints(["positive"], 1)
