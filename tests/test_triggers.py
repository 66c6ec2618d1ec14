import pytest

from bookci.book import book_workflow
from bookci.dsl import on
from bookci.triggers import evaluate_triggers, glob_match, match_trigger, matches_filters, should_run


@pytest.mark.parametrize(
    "path, pattern, expected",
    [
        ("docs/book/chapter1.md", "docs/book/**", True),
        ("docs/book/src/deep/page.md", "docs/book/**", True),
        ("docs/bookish/page.md", "docs/book/**", False),
        ("docs/book", "docs/book/**", False),
        ("README.md", "docs/book/**", False),
        ("README.md", "*.md", True),
        ("docs/intro.md", "*.md", False),
        ("docs/intro.md", "docs/*.md", True),
        ("docs/a/intro.md", "docs/*.md", False),
        ("README.md", "**/*.md", True),
        ("a/b/c.md", "**/*.md", True),
        ("a/b/c.rs", "**/*.md", False),
        ("src/v1.rs", "src/v?.rs", True),
        ("src/v10.rs", "src/v?.rs", False),
        ("docs/book+extra/x", "docs/book+extra/*", True),
    ],
)
def test_glob_match(path, pattern, expected):
    assert glob_match(path, pattern) is expected


def test_negated_pattern_undoes_earlier_match():
    patterns = ["docs/**", "!docs/book/**"]
    assert matches_filters("docs/guide.md", patterns)
    assert not matches_filters("docs/book/chapter1.md", patterns)


def test_later_pattern_can_match_again_after_negation():
    patterns = ["docs/**", "!docs/book/**", "docs/book/important.md"]
    assert matches_filters("docs/book/important.md", patterns)


def test_event_mismatch(make_ctx):
    trigger = on("pull_request", paths=["docs/book/**"])
    result = match_trigger(trigger, make_ctx(event_name="push"))
    assert not result
    assert "event" in result.reason


def test_no_path_filter_matches_any_change(make_ctx):
    ctx = make_ctx(changed_paths=("src/main.rs",))
    assert match_trigger(on("push"), ctx)


def test_no_path_filter_matches_even_without_changes(make_ctx):
    assert match_trigger(on("push"), make_ctx(changed_paths=()))


def test_path_filter_needs_a_matching_change(make_ctx):
    trigger = on("push", paths=["docs/book/**"])
    assert match_trigger(trigger, make_ctx(changed_paths=("README.md", "docs/book/chapter1.md")))
    assert not match_trigger(trigger, make_ctx(changed_paths=("README.md",)))
    assert not match_trigger(trigger, make_ctx(changed_paths=()))


def test_leading_dot_slash_is_ignored(make_ctx):
    trigger = on("push", paths=["docs/book/**"])
    assert match_trigger(trigger, make_ctx(changed_paths=("./docs/book/chapter1.md",)))


def test_dotfile_paths_are_not_stripped(make_ctx):
    trigger = on("push", paths=[".github/**"])
    assert match_trigger(trigger, make_ctx(changed_paths=(".github/workflows/book.yml",)))


def test_paths_ignore(make_ctx):
    trigger = on("push", paths_ignore=["**/*.md"])
    assert not match_trigger(trigger, make_ctx(changed_paths=("README.md", "docs/a.md")))
    assert match_trigger(trigger, make_ctx(changed_paths=("README.md", "src/lib.rs")))


def test_paths_ignore_combined_with_paths(make_ctx):
    trigger = on("push", paths=["docs/**"], paths_ignore=["docs/drafts/**"])
    assert not match_trigger(trigger, make_ctx(changed_paths=("docs/drafts/wip.md",)))
    assert match_trigger(trigger, make_ctx(changed_paths=("docs/drafts/wip.md", "docs/final.md")))


def test_branch_filter_on_push_uses_the_pushed_branch(make_ctx):
    trigger = on("push", branches=["master", "release/*"])
    assert match_trigger(trigger, make_ctx(ref="refs/heads/master"))
    assert match_trigger(trigger, make_ctx(ref="refs/heads/release/1.0"))
    assert not match_trigger(trigger, make_ctx(ref="refs/heads/feature"))


def test_branch_filter_on_pull_request_uses_the_base_branch(make_ctx):
    trigger = on("pull_request", branches=["master"])
    ctx = make_ctx(event_name="pull_request", ref="refs/pull/7/merge", base_ref="master")
    assert match_trigger(trigger, ctx)
    ctx = make_ctx(event_name="pull_request", ref="refs/pull/7/merge", base_ref="develop")
    assert not match_trigger(trigger, ctx)


def test_evaluate_triggers_reports_the_relevant_miss(make_ctx):
    triggers = [on("pull_request"), on("push", paths=["docs/book/**"])]
    result = evaluate_triggers(triggers, make_ctx(changed_paths=("README.md",)))
    assert not result
    assert "no changed path matched" in result.reason


def test_evaluate_triggers_without_trigger_for_event(make_ctx):
    result = evaluate_triggers([on("pull_request")], make_ctx(event_name="push"))
    assert not result
    assert "no 'push' trigger" in result.reason


def test_workflow_without_triggers_always_starts(make_ctx):
    assert evaluate_triggers([], make_ctx(changed_paths=()))


def test_only_unsupported_events_never_start(make_ctx):
    match = evaluate_triggers([], make_ctx(), declared_events=("workflow_dispatch", "schedule"))
    assert not match
    assert "workflow_dispatch" in match.reason


@pytest.mark.parametrize("event", ["push", "pull_request"])
def test_book_workflow_starts_on_book_changes(make_ctx, event):
    ctx = make_ctx(event_name=event, changed_paths=("docs/book/chapter1.md",))
    match = evaluate_triggers(book_workflow().triggers, ctx)
    assert match
    assert match.trigger.event == event


@pytest.mark.parametrize("event", ["push", "pull_request"])
def test_book_workflow_ignores_changes_outside_the_book(make_ctx, event):
    ctx = make_ctx(event_name=event, changed_paths=("README.md", "src/lib.rs"))
    assert not should_run(book_workflow().triggers, ctx)
