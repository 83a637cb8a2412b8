import pytest

from mapping.models import AssessmentAnswer, ContactInfo, FormKind, LeadSubmission, QualityTier
from mapping.scoring import (
    clamp,
    max_assessment_points,
    readiness_for,
    score,
    score_breakdown,
    tier_for,
)
from mapping.submission import normalize_assessment, normalize_onboarding

CONTACT = ContactInfo(first_name="Jane", last_name="Doe", email="jane@example.com")


def onboarding(**attributes):
    return LeadSubmission(form_kind=FormKind.ONBOARDING, contact=CONTACT, attributes=attributes)


def assessment(points):
    answers = {
        f"q{i}": AssessmentAnswer(question_id=f"q{i}", question=f"Question {i}", value="x", label="X", score=p)
        for i, p in enumerate(points)
    }
    return LeadSubmission(form_kind=FormKind.ASSESSMENT, contact=CONTACT, raw_answers=answers)


class TestTiers:

    @pytest.mark.parametrize("value,tier", [
        (100, QualityTier.HOT),
        (75, QualityTier.HOT),
        (74, QualityTier.WARM),
        (50, QualityTier.WARM),
        (49, QualityTier.COLD),
        (0, QualityTier.COLD),
    ])
    def test_lower_bounds_inclusive(self, value, tier):
        assert tier_for(value) == tier

    def test_clamp_rounds_half_up(self):
        assert clamp(62.5) == 63
        assert clamp(-4) == 0
        assert clamp(140) == 100

    def test_readiness_levels(self):
        assert readiness_for(80) == ("Highly Ready", "Complete System")
        assert readiness_for(50) == ("Ready", "Complete System")
        assert readiness_for(25) == ("Getting Ready", "Content Engine")
        assert readiness_for(10) == ("Building Foundation", "Content Engine")


class TestOnboardingScoring:

    def test_base_only(self):
        result = score(onboarding())
        assert result.numeric_score == 50
        assert result.quality_tier == QualityTier.WARM

    def test_hot_example_clamped(self):
        submission = onboarding(
            business_type="agency",
            selected_plan="complete-system",
            content_goals=["newsletters", "blogs", "social", "courses"],
            integration_preferences=["gohighlevel", "mailchimp", "zapier"],
        )
        result = score(submission)
        assert result.numeric_score == 100
        assert result.quality_tier == QualityTier.HOT

    def test_breakdown(self):
        submission = onboarding(
            business_type="coach",
            selected_plan="content-engine",
            content_goals=["blogs", "social"],
            integration_preferences=["mailchimp"],
        )
        assert score_breakdown(submission) == {
            "base": 50,
            "business_type": 5,
            "selected_plan": 10,
            "content_goals": 10,
            "integrations": 5,
            "crm_integration": 0,
        }
        assert score(submission).numeric_score == 80

    def test_crm_integration_bonus_stacks(self):
        result = score(onboarding(integration_preferences=["gohighlevel"]))
        assert result.numeric_score == 65

    def test_unknown_values_score_nothing(self):
        assert score(onboarding(business_type="florist", selected_plan="trial")).numeric_score == 50

    def test_labels_from_form_score_like_codes(self, onboarding_payload):
        onboarding_payload["businessType"] = "Marketing Agency"
        submission = normalize_onboarding(onboarding_payload)
        assert submission.attributes["business_type"] == "agency"
        assert score(submission).numeric_score == 100


class TestAssessmentScoring:

    def test_all_minimum_answers_is_cold(self):
        result = score(assessment([1] * 6))
        assert result.numeric_score == 25
        assert result.quality_tier == QualityTier.COLD

    def test_all_maximum_answers(self):
        assert score(assessment([4] * 6)).numeric_score == 100

    def test_percentage_rounds(self):
        # 15 / 24 = 62.5%
        assert score(assessment([4, 4, 4, 1, 1, 1])).numeric_score == 63

    def test_double_counted_points_are_clamped(self):
        assert score(assessment([4] * 6 + [4] * 3)).numeric_score == 100

    def test_no_answers(self):
        result = score(assessment([]))
        assert result.numeric_score == 0
        assert result.quality_tier == QualityTier.COLD

    def test_max_points(self):
        assert max_assessment_points() == 24

    def test_normalized_answers(self, assessment_payload):
        submission = normalize_assessment(assessment_payload)
        assert score(submission).numeric_score == 25


class TestIntegrationMonotonicity:
    """Selecting one more integration never lowers an onboarding score."""

    @pytest.mark.parametrize("sequence", [
        ["gohighlevel", "mailchimp", "convertkit", "hubspot", "zapier"],
        ["mailchimp", "convertkit", "hubspot", "zapier", "gohighlevel"],
        ["zapier", "gohighlevel", "zapier", "gohighlevel", "mailchimp"],
        ["GoHighLevel", "activecampaign", "unlisted-tool"],
    ])
    @pytest.mark.parametrize("profile", [
        {},
        {"business_type": "agency", "selected_plan": "custom", "content_goals": ["blogs", "social", "sales", "courses"]},
    ])
    def test_adding_integrations_never_lowers_score(self, sequence, profile):
        previous = score(onboarding(**profile)).numeric_score
        for count in range(1, len(sequence) + 1):
            current = score(onboarding(integration_preferences=sequence[:count], **profile)).numeric_score
            assert current >= previous, f"score dropped from {previous} to {current} after {sequence[:count]}"
            previous = current
