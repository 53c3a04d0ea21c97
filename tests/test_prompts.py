"""Tests for the prompt builders."""

import pytest

from sanctuary.prompts import (
    PromptPair,
    PromptTask,
    build_coaching_prompt,
    build_fidelity_prompt,
    build_gatekeeping_prompt,
    build_prompt,
    build_scoring_prompt,
)


class TestBuilders:
    def test_gatekeeping_carries_text_and_shape(self):
        pair = build_gatekeeping_prompt("i stood in the rain")
        assert '"i stood in the rain"' in pair.user
        for field in ("needsRefinement", "hookDetected", "ctaDetected", "softNudge"):
            assert field in pair.system
        assert "CALLS TO ACTION" in pair.system

    def test_coaching_names_the_step(self):
        assert "step 4 (THE FEELING)" in build_coaching_prompt("text", 4).system
        assert "one step of a 12-step" in build_coaching_prompt("text").system

    def test_scoring_lists_steps_in_numeric_order(self):
        pair = build_scoring_prompt({11: "eleven", 3: "three", 1: "one"})
        assert pair.user.endswith("Step 1: one\n\nStep 3: three\n\nStep 11: eleven")
        for field in ("authenticity", "cringeRisk", "platformPlay", "summary"):
            assert f'"{field}"' in pair.system

    def test_fidelity_has_both_texts(self):
        pair = build_fidelity_prompt({1: "original moment"}, "published words")
        assert pair.user.index("Step 1: original moment") < pair.user.index("published words")
        assert '"fidelityScore"' in pair.system
        assert '"credibilityRiskExamples"' in pair.system

    def test_builders_are_pure(self):
        assert build_scoring_prompt({1: "a"}) == build_scoring_prompt({1: "a"})


class TestDispatch:
    @pytest.mark.parametrize("task, inputs", [
        (PromptTask.GATEKEEPING, {"text": "t"}),
        (PromptTask.COACHING, {"text": "t", "step": 2}),
        (PromptTask.SCORING, {"content": {1: "t"}}),
        (PromptTask.FIDELITY, {"original": {1: "t"}, "published": "p"}),
    ])
    def test_build_prompt(self, task, inputs):
        assert isinstance(build_prompt(task, **inputs), PromptPair)

    def test_unknown_task(self):
        with pytest.raises(ValueError):
            build_prompt("summarize", text="t")
