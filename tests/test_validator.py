"""Tests for the local response quality gate."""

import pytest

from clawless_router.heuristics import EntityExtractor, RegexEntityExtractor, find_placeholder
from clawless_router.models import Response, Task, Tier
from clawless_router.validator import QualityValidator, parse_structured


def _resp(content: str) -> Response:
    return Response(content=content, backend_used=Tier.LOCAL)


@pytest.fixture
def validator() -> QualityValidator:
    return QualityValidator()


class TestStructuredOutput:
    def test_unparseable_fails(self, validator):
        task = Task(kind="extraction", prompt="x", expects_structured_output=True)
        assert not validator.validate(_resp("name: repo"), task)

    def test_unparseable_fails_even_with_other_checks_satisfied(self, validator):
        task = Task(kind="extraction", prompt="x", expects_structured_output=True, min_length=1)
        assert not validator.validate(_resp("{not json at all, but long enough}"), task)

    def test_valid_json_passes(self, validator):
        task = Task(kind="extraction", prompt="x", expects_structured_output=True)
        assert validator.validate(_resp('{"name": "repo"}'), task)

    def test_missing_required_field_fails(self, validator):
        task = Task(
            kind="extraction", prompt="x", expects_structured_output=True, required_fields=("name", "owner"),
        )
        assert not validator.validate(_resp('{"name": "repo"}'), task)
        assert validator.explain(_resp('{"name": "repo"}'), task) == "missing required fields: owner"

    def test_all_required_fields_pass(self, validator):
        task = Task(
            kind="extraction", prompt="x", expects_structured_output=True, required_fields=("name", "owner"),
        )
        assert validator.validate(_resp('{"name": "repo", "owner": "user", "extra": 1}'), task)

    def test_required_fields_need_an_object(self, validator):
        task = Task(kind="extraction", prompt="x", expects_structured_output=True, required_fields=("name",))
        assert not validator.validate(_resp('["name"]'), task)

    def test_fenced_json_accepted(self, validator):
        task = Task(kind="extraction", prompt="x", expects_structured_output=True, required_fields=("name",))
        assert validator.validate(_resp('```json\n{"name": "repo"}\n```'), task)

    def test_parse_structured_raises_value_error(self):
        with pytest.raises(ValueError):
            parse_structured("nope")


class TestLength:
    def test_short_content_fails(self, validator):
        task = Task(kind="extraction", prompt="x", min_length=10)
        assert not validator.validate(_resp("short"), task)

    def test_exact_length_passes(self, validator):
        task = Task(kind="extraction", prompt="x", min_length=5)
        assert validator.validate(_resp("exact"), task)


class TestPlaceholders:
    @pytest.mark.parametrize("content", [
        "TODO: fill in",
        "fixme later",
        "See https://example.com/docs",
        "<PLACEHOLDER>",
    ])
    def test_markers_fail(self, validator, content):
        assert not validator.validate(_resp(content), Task(kind="extraction", prompt="x"))

    def test_find_placeholder(self):
        assert find_placeholder("Nothing here") is None
        assert find_placeholder("a ToDo item") == "todo"

    def test_plain_text_passes(self, validator):
        assert validator.validate(_resp("repo"), Task(kind="extraction", prompt="x"))


class TestEntityOverlap:
    CONTEXT = "Alice works at Acme."

    def test_exactly_half_unmatched_passes(self, validator):
        # {Alice, Bob}: one of two entities is new
        task = Task(kind="extraction", prompt="x", context=self.CONTEXT)
        assert validator.validate(_resp("Alice met Bob."), task)

    def test_more_than_half_unmatched_fails(self, validator):
        # {Alice, Bob, Carol}: two of three entities are new
        task = Task(kind="extraction", prompt="x", context=self.CONTEXT)
        assert not validator.validate(_resp("Alice met Bob and Carol."), task)

    def test_all_grounded_passes(self, validator):
        task = Task(kind="extraction", prompt="x", context=self.CONTEXT)
        assert validator.validate(_resp("Alice is employed by Acme"), task)

    def test_no_entities_passes(self, validator):
        task = Task(kind="extraction", prompt="x", context=self.CONTEXT)
        assert validator.validate(_resp("yes"), task)

    def test_skipped_without_context(self, validator):
        assert validator.validate(_resp("Zed met Yara in Oslo"), Task(kind="extraction", prompt="x"))

    def test_urls_are_entities(self, validator):
        context = "Repo at https://github.com/user/repo"
        task = Task(kind="extraction", prompt="x", context=context)
        assert validator.validate(_resp("https://github.com/user/repo"), task)
        assert not validator.validate(_resp("https://gitlab.com/other/thing"), task)

    def test_duplicates_counted_once(self, validator):
        # {Alice, Bob}: repeats do not shift the ratio
        task = Task(kind="extraction", prompt="x", context=self.CONTEXT)
        assert validator.validate(_resp("Bob Bob Bob Alice"), task)

    def test_custom_extractor(self):
        class Words(EntityExtractor):
            def extract(self, text):
                return set(text.split())

        task = Task(kind="extraction", prompt="x", context="a b")
        assert not QualityValidator(extractor=Words()).validate(_resp("c d a"), task)


def test_regex_extractor():
    entities = RegexEntityExtractor().extract("See https://github.com/User/Repo for Docs and docs")
    assert entities == {"https://github.com/User/Repo", "See", "Docs"}


def test_explain_passes_with_none(validator):
    assert validator.explain(_resp("fine"), Task(kind="extraction", prompt="x")) is None
