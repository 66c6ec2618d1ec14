import pytest

from bookci.dsl import as_param, job, on, sh, uses, wf


def test_uses_stores_string_params():
    step = uses("Install rust", "actions-rs/toolchain@v1", toolchain="stable", override=True, retries=3)
    assert step.params == {"toolchain": "stable", "override": "true", "retries": "3"}
    assert step.action == "actions-rs/toolchain"


def test_uses_accepts_with_mapping_for_dashed_names():
    step = uses("Checkout", "actions/checkout@v2", {"fetch-depth": 0}, path="src")
    assert step.params == {"fetch-depth": "0", "path": "src"}


@pytest.mark.parametrize("value, expected", [(True, "true"), (False, "false"), (1, "1"), ("x", "x")])
def test_as_param(value, expected):
    assert as_param(value) == expected


def test_job_requires_steps():
    with pytest.raises(ValueError):
        job("empty")


def test_job_combines_steps_list_and_positional_steps():
    j = job("j", sh("b", "echo b"), steps_list=[sh("a", "echo a")])
    assert [s.name for s in j.steps] == ["a", "b"]


def test_job_default_cwd_only_fills_missing():
    j = job("j", sh("a", "ls"), sh("b", "ls", cwd="other"), cwd="docs")
    assert [s.cwd for s in j.steps] == ["docs", "other"]


def test_job_title_prefers_display_name():
    assert job("deploy", sh("a", "true"), display_name="Deploy book").title == "Deploy book"
    assert job("deploy", sh("a", "true")).title == "deploy"


def test_wf_and_on():
    w = wf(
        job("tests", sh("t", "true")),
        name="Docs",
        triggers=[on("push", paths=["docs/**"], branches=["master"])],
    )
    assert w.name == "Docs"
    assert w.triggers[0].paths == ("docs/**",)
    assert w.triggers[0].branches == ("master",)
    assert [j.name for j in w.jobs] == ["tests"]
