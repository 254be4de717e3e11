import pytest

from componentcargo.args import Arg, ArgKind, ArgumentError, Args


def test_it_parses_flags():
    args = Args().flag("--flag", "f")

    args.parse("--not-flag", iter(()))
    assert args.get("--flag").count() == 0

    args.parse("--flag", iter(()))
    with pytest.raises(ArgumentError) as err:
        args.parse("--flag", iter(()))
    assert str(err.value) == "the argument '--flag' cannot be used multiple times"
    arg = args.get("--flag")
    assert arg.count() == 1
    arg.reset()

    args.parse("-rxd", iter(()))
    assert args.get("--flag").count() == 0

    args.parse("-rfx", iter(()))
    with pytest.raises(ArgumentError) as err:
        args.parse("-fxz", iter(()))
    assert str(err.value) == "the argument '--flag' cannot be used multiple times"
    arg = args.get("--flag")
    assert arg.count() == 1

    assert str(arg) == "--flag"


def test_it_parses_single_values():
    args = Args().single("--option", "VALUE", "o")

    args.parse("--not-option", iter(()))
    assert args.get("--option").take_single() is None

    with pytest.raises(ArgumentError) as err:
        args.parse("--option", iter(()))
    assert (
        str(err.value)
        == "a value is required for '--option <VALUE>' but none was supplied"
    )

    args.parse("--option=value", iter(()))
    with pytest.raises(ArgumentError) as err:
        args.parse("--option=value", iter(()))
    assert (
        str(err.value)
        == "the argument '--option <VALUE>' cannot be used multiple times"
    )
    arg = args.get("--option")
    assert arg.take_single() == "value"
    arg.reset()

    rest = iter(["value"])
    args.parse("--option", rest)
    assert next(rest, None) is None
    rest = iter(["value"])
    with pytest.raises(ArgumentError) as err:
        args.parse("--option", rest)
    assert (
        str(err.value)
        == "the argument '--option <VALUE>' cannot be used multiple times"
    )
    arg = args.get("--option")
    assert arg.take_single() == "value"
    arg.reset()

    args.parse("-xyz", iter(()))
    assert args.get("--option").take_single() is None

    with pytest.raises(ArgumentError) as err:
        args.parse("-fo", iter(()))
    assert (
        str(err.value)
        == "a value is required for '--option <VALUE>' but none was supplied"
    )

    args.parse("-xofoo", iter(()))
    with pytest.raises(ArgumentError) as err:
        args.parse("-zyobar", rest)
    assert (
        str(err.value)
        == "the argument '--option <VALUE>' cannot be used multiple times"
    )
    arg = args.get("--option")
    assert arg.take_single() == "foo"

    args.parse("-xo=foo", iter(()))
    with pytest.raises(ArgumentError) as err:
        args.parse("-zyo=bar", rest)
    assert (
        str(err.value)
        == "the argument '--option <VALUE>' cannot be used multiple times"
    )
    arg = args.get("--option")
    assert arg.take_single() == "foo"

    args.parse("-xo", iter(["value"]))
    with pytest.raises(ArgumentError) as err:
        args.parse("-zyo", iter(["value"]))
    assert (
        str(err.value)
        == "the argument '--option <VALUE>' cannot be used multiple times"
    )
    arg = args.get("--option")
    assert arg.take_single() == "value"

    assert str(arg) == "--option <VALUE>"


def test_it_parses_multiple_values():
    args = Args().multiple("--option", "VALUE", "o")

    args.parse("--not-option", iter(()))
    assert args.get("--option").take_multiple() == []

    with pytest.raises(ArgumentError) as err:
        args.parse("--option", iter(()))
    assert (
        str(err.value)
        == "a value is required for '--option <VALUE>' but none was supplied"
    )

    args.parse("--option=foo", iter(()))
    args.parse("--option=bar", iter(()))
    args.parse("--option=baz", iter(()))
    arg = args.get("--option")
    assert arg.take_multiple() == ["foo", "bar", "baz"]
    arg.reset()

    for value in ("foo", "bar", "baz"):
        rest = iter([value])
        args.parse("--option", rest)
        assert next(rest, None) is None
    arg = args.get("--option")
    assert arg.take_multiple() == ["foo", "bar", "baz"]
    arg.reset()

    args.parse("-xyz", iter(()))
    assert args.get("--option").take_single() is None

    with pytest.raises(ArgumentError) as err:
        args.parse("-fo", iter(()))
    assert (
        str(err.value)
        == "a value is required for '--option <VALUE>' but none was supplied"
    )

    args.parse("-xofoo", iter(()))
    args.parse("-yobar", iter(()))
    args.parse("-zobaz", iter(()))
    arg = args.get("--option")
    assert arg.take_multiple() == ["foo", "bar", "baz"]

    args.parse("-xo=foo", iter(()))
    args.parse("-yo=bar", iter(()))
    args.parse("-zo=baz", iter(()))
    arg = args.get("--option")
    assert arg.take_multiple() == ["foo", "bar", "baz"]

    args.parse("-xo", iter(["foo"]))
    args.parse("-yo", iter(["bar"]))
    args.parse("-zo", iter(["baz"]))
    arg = args.get("--option")
    assert arg.take_multiple() == ["foo", "bar", "baz"]

    assert str(arg) == "--option <VALUE>"


def test_it_parses_counting_flag():
    args = Args().counting("--flag", "f")

    args.parse("--not-flag", iter(()))
    assert args.get("--flag").count() == 0

    args.parse("--flag", iter(()))
    args.parse("--flag", iter(()))
    args.parse("--flag", iter(()))
    arg = args.get("--flag")
    assert arg.count() == 3
    arg.reset()

    args.parse("-xfzf", iter(()))
    args.parse("-pfft", iter(()))
    args.parse("-abcd", iter(()))
    arg = args.get("--flag")
    assert arg.count() == 4

    assert str(arg) == "--flag"


@pytest.mark.parametrize("text", ["build", "-", "Cargo.toml"])
def test_non_options_are_reported(text):
    args = Args().flag("--flag", "f")
    assert args.parse(text, iter(())) is False
    assert args.get("--flag").count() == 0


def test_unknown_long_options_are_options():
    args = Args().flag("--flag", "f")
    assert args.parse("--other=value", iter(())) is True
    assert args.get("--flag").count() == 0


def test_flag_with_inline_value_is_ignored():
    args = Args().flag("--flag", "f")
    assert args.parse("--flag=yes", iter(())) is True
    assert args.get("--flag").count() == 0


def test_short_lookup_matches_long_lookup():
    args = Args().single("--color", "WHEN", "c").flag("--quiet", "q")
    assert args.get_short("c") is args.get("--color")
    assert args.get_short("q") is args.get("--quiet")
    assert args.get_short("z") is None
    assert args.get("--missing") is None


def test_duplicate_registration_is_rejected():
    with pytest.raises(ValueError):
        Args().flag("--flag", "f").flag("--flag")
    with pytest.raises(ValueError):
        Args().flag("--one", "f").flag("--two", "f")


def test_value_on_flag_is_a_type_error():
    arg = Arg("--flag", ArgKind.FLAG)
    with pytest.raises(TypeError):
        arg.set_value("x")
    single = Arg("--opt", ArgKind.SINGLE, value_name="V")
    with pytest.raises(TypeError):
        single.set_present()


def test_take_clears_values():
    args = Args().multiple("--target", "TRIPLE")
    args.parse("--target=a", iter(()))
    arg = args.get("--target")
    assert arg.count() == 1
    assert arg.take_multiple() == ["a"]
    assert arg.count() == 0
    assert arg.take_multiple() == []