import pytest

from bookci.expressions import (
    ExpressionError,
    evaluate,
    evaluate_condition,
    interpolate,
    interpolate_mapping,
    strip_wrapper,
)

CONTEXT = {
    "github": {
        "event_name": "push",
        "ref": "refs/heads/master",
        "ref_name": "master",
        "event": {"repository": {"default_branch": "master"}},
        "base_ref": "",
    },
    "env": {"MODE": "release"},
    "needs": {"tests": {"result": "success"}},
    "secrets": {"GITHUB_TOKEN": "tok-123"},
}


@pytest.mark.parametrize(
    "expr, expected",
    [
        ("github.ref == 'refs/heads/master'", True),
        ("github.ref == 'REFS/HEADS/MASTER'", True),
        ("github.ref != 'refs/heads/master'", False),
        ("github.ref_name == github.event.repository.default_branch", True),
        ("github.event_name == 'push' && env.MODE == 'release'", True),
        ("github.event_name == 'pull_request' || env.MODE == 'release'", True),
        ("!(github.event_name == 'push')", False),
        ("needs.tests.result == 'success'", True),
        ("contains(github.ref, 'master')", True),
        ("startsWith(github.ref, 'refs/heads/')", True),
        ("endsWith(github.ref, '/main')", False),
        ("github.missing == null", True),
        ("1 == 1", True),
        ("true", True),
        ("''", False),
    ],
)
def test_evaluate_condition(expr, expected):
    assert evaluate_condition(expr, CONTEXT) is expected


def test_wrapped_condition():
    assert evaluate_condition("${{ github.ref_name == github.event.repository.default_branch }}", CONTEXT)


def test_missing_lookup_is_null():
    assert evaluate("github.nope.deeper", CONTEXT) is None
    assert evaluate("needs.deploy.result", CONTEXT) is None


def test_and_or_return_operands():
    assert evaluate("github.base_ref || 'master'", CONTEXT) == "master"
    assert evaluate("env.MODE && 'yes'", CONTEXT) == "yes"


def test_quoted_string_escape():
    assert evaluate("'it''s'", CONTEXT) == "it's"


@pytest.mark.parametrize(
    "expr",
    [
        "",
        "github.ref ==",
        "(github.ref == 'x'",
        "github.ref = 'x'",
        "unknown(1, 2)",
        "contains('a')",
        "'a' 'b'",
    ],
)
def test_invalid_expressions_raise(expr):
    with pytest.raises(ExpressionError):
        evaluate(expr, CONTEXT)


def test_strip_wrapper():
    assert strip_wrapper("${{ a == b }}").strip() == "a == b"
    assert strip_wrapper("a == b") == "a == b"


def test_interpolate():
    text = "token=${{ secrets.GITHUB_TOKEN }} ref=${{ github.ref }} none=${{ env.UNSET }}"
    assert interpolate(text, CONTEXT) == "token=tok-123 ref=refs/heads/master none="


def test_interpolate_leaves_plain_text_alone():
    assert interpolate("mdbook build -d gh-pages/master docs/book", CONTEXT) == (
        "mdbook build -d gh-pages/master docs/book"
    )


def test_interpolate_booleans():
    assert interpolate("${{ github.ref_name == github.event.repository.default_branch }}", CONTEXT) == "true"


def test_interpolate_mapping():
    out = interpolate_mapping({"github_token": "${{ secrets.GITHUB_TOKEN }}", "keep_files": "true"}, CONTEXT)
    assert out == {"github_token": "tok-123", "keep_files": "true"}
