from blockconfig import converters
from blockconfig.exceptions import ConversionError
from blockconfig.values import ObjectValue

from pytest import raises


# arithmetic ===========================================================================


def test_integer_arithmetic():
    # given
    converter = converters.arithmetic(int)

    # when
    result = converter("(42 - 10) * 3 + 2")

    # then
    assert result == 98


def test_float_arithmetic():
    # given
    converter = converters.arithmetic(float)

    # when
    result = converter("9 / 2")

    # then
    assert result == 4.5


def test_arithmetic_raises_if_given_unknown_operator():
    # given
    converter = converters.arithmetic(int)

    # when / then
    with raises(ConversionError):
        converter("9 % 2")


def test_integer_accepts_integral_floats_only():
    # given
    converter = converters.arithmetic(int)

    # then
    assert converter(4.0) == 4
    assert isinstance(converter(4.0), int)
    with raises(ConversionError):
        converter(4.5)
    with raises(ConversionError):
        converter("9 / 2")


def test_float_accepts_integers():
    assert converters.arithmetic(float)(3) == 3.0


def test_arithmetic_rejects_bools_and_containers():
    # given
    converter = converters.arithmetic(int)

    # then
    with raises(ConversionError):
        converter(True)
    with raises(ConversionError, match="list"):
        converter((1, 2))


# logic ================================================================================


def test_logic_passes_bools_through():
    assert converters.logic(True) is True


def test_logic_accepts_true_and_false_in_any_case():
    assert converters.logic("TRUE") is True
    assert converters.logic("False") is False


def test_logic_evaluates_expressions():
    assert converters.logic("True and (False or True)") is True


def test_logic_accepts_lowercase_keywords_in_expressions():
    assert converters.logic("true and false") is False
    assert converters.logic("not false") is True
    assert converters.logic("true and true and false") is False


def test_logic_rejects_numbers():
    with raises(ConversionError):
        converters.logic(1)


def test_logic_rejects_unknown_operators():
    with raises(ConversionError):
        converters.logic("True + False")


# text =================================================================================


def test_text_formats_scalars():
    assert converters.text("x") == "x"
    assert converters.text(5432) == "5432"
    assert converters.text(False) == "false"


def test_text_rejects_containers():
    with raises(ConversionError, match="Cannot convert object to string"):
        converters.text(ObjectValue({"a": 1}))


# anything =============================================================================


def test_anything_returns_plain_data():
    assert converters.anything(ObjectValue({"a": (1, 2)})) == {"a": [1, 2]}
