from __future__ import annotations

import random as random_module
import string

from hypothesis import given
from hypothesis import strategies as st

from prow_experiment import squash
from prow_experiment.models import Config, Presubmit


def _job(name: str, **fields: object) -> Presubmit:
    return Presubmit(name=name, **fields)


def _names(jobs: list[Presubmit]) -> list[str]:
    return [job.name for job in jobs]


def test_squash_presubmits_keeps_new_and_changed() -> None:
    base = [_job("dont-touch"), _job("modify-something", max_concurrency=1)]
    head = [
        _job("dont-touch"),
        _job("modify-something", max_concurrency=2),
        _job("new-job"),
    ]

    result = squash.squash_presubmits(base, head)

    assert _names(result) == ["modify-something", "new-job"]
    assert result[0].max_concurrency == 2


def test_squash_presubmits_detects_pod_spec_changes() -> None:
    base = [_job("unit", spec={"containers": [{"image": "golang:1.20"}]})]
    head = [_job("unit", spec={"containers": [{"image": "golang:1.21"}]})]

    assert _names(squash.squash_presubmits(base, head)) == ["unit"]


def test_squash_presubmits_duplicate_base_names_duplicate_output() -> None:
    base = [_job("dup", max_concurrency=1), _job("dup", max_concurrency=3)]
    head = [_job("dup", max_concurrency=2)]

    assert _names(squash.squash_presubmits(base, head)) == ["dup", "dup"]


def test_squash_presubmits_removed_jobs_do_not_appear() -> None:
    base = [_job("gone"), _job("kept")]
    head = [_job("kept")]

    assert squash.squash_presubmits(base, head) == []


def test_squash_presubmit_configs_per_repository() -> None:
    base = {
        "foo/bar": [_job("dont-touch"), _job("modify-something", max_concurrency=1)],
        "foo/baz": [_job("dont-touch")],
        "foo/same": [_job("same")],
    }
    head = {
        "foo/bar": [_job("dont-touch"), _job("modify-something", max_concurrency=2)],
        "foo/baz": [_job("dont-touch"), _job("new-presubmit", max_concurrency=1)],
        "foo/new": [_job("fresh")],
        "foo/same": [_job("same")],
    }

    result = squash.squash_presubmit_configs(base, head)

    assert list(result) == ["foo/bar", "foo/baz", "foo/new"]
    assert _names(result["foo/bar"]) == ["modify-something"]
    assert _names(result["foo/baz"]) == ["new-presubmit"]
    assert _names(result["foo/new"]) == ["fresh"]


def test_squash_configs_keeps_head_settings_and_omits_unchanged() -> None:
    base = {
        "foo/path": Config(
            path="foo/path",
            presubmits={
                "foo/bar": [_job("dont-touch"), _job("modify-something", max_concurrency=1)],
                "foo/baz": [_job("dont-touch")],
            },
        ),
        "same/path": Config(path="same/path", presubmits={"foo/bar": [_job("x")]}),
    }
    head = {
        "foo/path": Config(
            path="foo/path",
            prowjob_namespace="prow",
            presubmits={
                "foo/bar": [_job("dont-touch"), _job("modify-something", max_concurrency=2)],
                "foo/baz": [_job("dont-touch"), _job("new-presubmit", max_concurrency=1)],
            },
        ),
        "same/path": Config(path="same/path", presubmits={"foo/bar": [_job("x")]}),
    }

    [config] = squash.squash_configs(base, head)

    assert config.path == "foo/path"
    assert config.prowjob_namespace == "prow"
    assert {repo: _names(jobs) for repo, jobs in config.presubmits.items()} == {
        "foo/bar": ["modify-something"],
        "foo/baz": ["new-presubmit"],
    }
    assert _names(head["foo/path"].presubmits["foo/bar"]) == [
        "dont-touch",
        "modify-something",
    ]


def test_squash_configs_path_missing_from_base_is_kept_whole() -> None:
    head = {"jobs/a.yaml": Config(path="jobs/a.yaml", presubmits={"o/r": [_job("a")]})}

    assert squash.squash_configs({}, head) == [head["jobs/a.yaml"]]


def test_squash_pipeline_appends_added_configs_verbatim() -> None:
    base = {"m.yaml": Config(path="m.yaml", presubmits={"o/r": [_job("a")]})}
    head = {"m.yaml": Config(path="m.yaml", presubmits={"o/r": [_job("a", optional=True)]})}
    added = {
        "n.yaml": Config(path="n.yaml", presubmits={"o/r": [_job("b"), _job("c")]}),
    }

    configs = squash.squash_pipeline(base, head, added)

    assert [config.path for config in configs] == ["m.yaml", "n.yaml"]
    assert configs[1] is added["n.yaml"]
    assert configs[1].job_count() == 2


def test_payload_ignores_name_only() -> None:
    assert squash.payloads_equal(_job("a"), _job("b"))
    assert not squash.payloads_equal(_job("a"), _job("a", labels={"k": "v"}))


job_names = st.text(alphabet=string.ascii_lowercase + "-", min_size=1, max_size=8)


@st.composite
def presubmit_lists(draw: st.DrawFn) -> list[Presubmit]:
    names = draw(st.lists(job_names, unique=True, max_size=6))
    return [
        _job(name, max_concurrency=draw(st.integers(min_value=0, max_value=3)))
        for name in names
    ]


@given(presubmit_lists())
def test_squash_against_itself_is_empty(jobs: list[Presubmit]) -> None:
    assert squash.squash_presubmits(jobs, jobs) == []


@given(presubmit_lists())
def test_squash_against_nothing_returns_head(jobs: list[Presubmit]) -> None:
    assert squash.squash_presubmits([], jobs) == jobs


@given(presubmit_lists(), presubmit_lists())
def test_squash_result_is_drawn_from_head(
    base: list[Presubmit], head: list[Presubmit]
) -> None:
    base_snapshot = [job.model_copy(deep=True) for job in base]
    head_snapshot = [job.model_copy(deep=True) for job in head]

    result = squash.squash_presubmits(base, head)

    assert all(any(job is candidate for candidate in head) for job in result)
    base_by_name = {job.name: job for job in base}
    for job in result:
        other = base_by_name.get(job.name)
        assert other is None or not squash.payloads_equal(job, other)
    assert base == base_snapshot
    assert head == head_snapshot


def test_new_job_next_to_untouched_job() -> None:
    base = {"foo/bar": [_job("dont-touch")]}
    head = {"foo/bar": [_job("dont-touch"), _job("modify-something", max_concurrency=1)]}

    result = squash.squash_presubmit_configs(base, head)

    assert [(job.name, job.max_concurrency) for job in result["foo/bar"]] == [
        ("modify-something", 1)
    ]


def test_new_repository_is_kept_untouched() -> None:
    base = {"foo/bar": [_job("dont-touch")]}
    new_job = _job("new-presubmit", max_concurrency=1)
    head = {"foo/bar": [_job("dont-touch")], "foo/baz": [new_job]}

    result = squash.squash_presubmit_configs(base, head)

    assert list(result) == ["foo/baz"]
    assert result["foo/baz"] == [new_job]


@given(presubmit_lists(), presubmit_lists(), st.randoms(use_true_random=False))
def test_squash_is_insensitive_to_input_order(
    base: list[Presubmit], head: list[Presubmit], random: random_module.Random
) -> None:
    shuffled_base = list(base)
    shuffled_head = list(head)
    random.shuffle(shuffled_base)
    random.shuffle(shuffled_head)

    original = squash.squash_presubmits(base, head)
    permuted = squash.squash_presubmits(shuffled_base, shuffled_head)

    assert sorted(map(squash.job_payload, original)) == sorted(map(squash.job_payload, permuted))
    assert sorted(_names(original)) == sorted(_names(permuted))


@given(presubmit_lists(), presubmit_lists())
def test_changed_jobs_carry_head_payload(
    base: list[Presubmit], head: list[Presubmit]
) -> None:
    head_by_name = {job.name: job for job in head}

    for job in squash.squash_presubmits(base, head):
        assert squash.job_payload(job) == squash.job_payload(head_by_name[job.name])
