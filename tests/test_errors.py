import pytest

from apikit.errors import (
    ERROR_LANG_PACK,
    ErrAttr,
    Errors,
    go_format,
    new_error,
    register_builtin_error,
)
from apikit.locale import LangPackage, Tag


@pytest.fixture
def pack():
    ERROR_LANG_PACK["TestMin"] = ErrAttr(
        http_status=400,
        code=40099,
        messages=[
            LangPackage(Tag.ENGLISH, "at least %v"),
            LangPackage(Tag.BAHASA, "minimal %v"),
        ],
    )
    yield
    ERROR_LANG_PACK.pop("TestMin", None)


def test_register_builtin_error_formats(pack):
    err = register_builtin_error("TestMin", 3)
    assert err.http_status == 400
    assert err.code == 40099
    assert str(err) == go_format("at least %v", 3)
    assert err.localized_error("id") == go_format("minimal %v", 3)


def test_register_builtin_unknown_raises():
    with pytest.raises(LookupError):
        register_builtin_error("NoSuchKey")


def test_go_format_missing_and_percent():
    assert go_format("a %v b %%", ) == "a %!v(MISSING) b %"
    assert go_format("%v", True) == "true"


def test_new_error_with_attr():
    attr = ErrAttr(http_status=418, code=7, messages=[LangPackage(Tag.BAHASA, "teh")])
    err = new_error("Unknown", attr)
    assert err.http_status == 418
    assert err.code == 7
    assert str(err) == "Unknown"
    assert err.localized_error(Tag.BAHASA) == "teh"
    assert err.localized_error(Tag.ENGLISH) == "Unknown"


def test_new_error_defaults_to_internal():
    err = new_error("Other")
    assert (err.http_status, err.code) == (500, 500)


def test_new_error_from_pack(pack):
    err = new_error("TestMin", None, 9)
    assert err.localized_error(Tag.ENGLISH) == go_format("at least %v", 9)


def test_errors_str_sorted_and_nested():
    inner = Errors({"x": ValueError("bad")})
    errs = Errors({"b": new_error("B"), "a": inner})
    assert str(errs) == "a: (x: bad.); b: B."
    assert str(Errors()) == ""
    assert not Errors()


def test_errors_localized(pack):
    errs = Errors({"f": register_builtin_error("TestMin", 1), "g": ValueError("v")})
    result = errs.localized_error(Tag.BAHASA)
    assert result == {"f": go_format("minimal %v", 1), "g": "v"}


def test_errors_is_raisable():
    errs = Errors({"k": new_error("K")})
    with pytest.raises(Errors) as info:
        raise errs
    assert info.value is errs
    assert str(info.value) == "k: K."
    assert list(info.value) == ["k"]