from progol_opt.util.parsing import safe_bool, safe_float


def test_safe_float_parses_numeric_inputs() -> None:
    assert safe_float(1) == 1.0
    assert safe_float(1.5) == 1.5
    assert safe_float("-2.25") == -2.25
    assert safe_float(" 45% ") == 0.45
    assert safe_float(True) is None
    assert safe_float("  ") is None
    assert safe_float("abc") is None
    assert safe_float("x%") is None


def test_safe_bool_parses_flag_inputs() -> None:
    assert safe_bool(True) is True
    assert safe_bool("Yes") is True
    assert safe_bool("si") is True
    assert safe_bool(1) is True
    assert safe_bool(0) is False
    assert safe_bool("") is False
    assert safe_bool(None) is False
    assert safe_bool("no") is False
    assert safe_bool("maybe") is None
