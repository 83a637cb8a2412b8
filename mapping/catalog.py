"""
Static semantic-field catalog.

Every piece of lead data the business tracks is described once here, together
with the display-name/key variants it has been provisioned under in the CRM.
Renamed or re-provisioned fields are handled by adding aliases to this table.
"""
from typing import Dict, List, Tuple

from mapping.models import DataType, FormKind, SemanticFieldSpec

ONBOARDING_ONLY = frozenset({FormKind.ONBOARDING})
ASSESSMENT_ONLY = frozenset({FormKind.ASSESSMENT})
BOTH_FORMS = frozenset(FormKind)

BUSINESS_TYPES = {
    "creator": "Content Creator",
    "podcaster": "Podcast Host",
    "business": "Business Owner",
    "coach": "Coach or Consultant",
    "consultant": "Coach or Consultant",
    "agency": "Marketing Agency",
    "other": "Other Professional",
}

PLANS = {
    "trial": "14-Day Free Trial",
    "standard": "Done-For-You Content",
    "content-engine": "Content Engine",
    "complete-system": "Complete System",
    "custom": "Custom Enterprise",
    "not-sure": "Not Sure Yet",
}

CONTENT_GOALS = {
    "newsletters": "Email Newsletters",
    "blogs": "Blog Posts",
    "social": "Social Media Content",
    "courses": "Course Content",
    "sales": "Sales Materials",
    "support": "Customer Support",
}

INTEGRATIONS = {
    "gohighlevel": "GoHighLevel",
    "mailchimp": "Mailchimp",
    "convertkit": "ConvertKit",
    "hubspot": "HubSpot",
    "activecampaign": "ActiveCampaign",
    "zapier": "Zapier",
}

# The integration code for the CRM this service writes to
CRM_INTEGRATION = "gohighlevel"

# Readiness assessment: question id -> (question text, semantic key, ((code, label, points), ...))
ASSESSMENT_QUESTIONS: Dict[str, Tuple[str, str, Tuple[Tuple[str, str, int], ...]]] = {
    "current-content": (
        "How do you currently create content for your business?",
        "current_content_creation",
        (
            ("manual", "Manually write everything", 1),
            ("outsource", "Outsource to freelancers/agencies", 2),
            ("team", "Have an in-house content team", 3),
            ("mixed", "Mix of manual and automated tools", 4),
        ),
    ),
    "content-volume": (
        "How much content do you need to produce monthly?",
        "content_volume",
        (
            ("minimal", "1-5 pieces", 1),
            ("moderate", "6-20 pieces", 2),
            ("high", "21-50 pieces", 3),
            ("very-high", "50+ pieces", 4),
        ),
    ),
    "crm-usage": (
        "How do you currently manage customer relationships?",
        "crm_usage",
        (
            ("spreadsheets", "Spreadsheets or manual tracking", 1),
            ("basic-crm", "Basic CRM system", 2),
            ("advanced-crm", "Advanced CRM with automation", 3),
            ("integrated", "Fully integrated systems", 4),
        ),
    ),
    "lead-response": (
        "How quickly do you typically respond to new leads?",
        "lead_response_time",
        (
            ("days", "Within a few days", 1),
            ("hours", "Within 24 hours", 2),
            ("quick", "Within a few hours", 3),
            ("instant", "Almost instantly", 4),
        ),
    ),
    "time-spent": (
        "How much time do you spend on repetitive tasks weekly?",
        "time_on_repetitive_tasks",
        (
            ("minimal", "Less than 5 hours", 4),
            ("moderate", "5-15 hours", 3),
            ("high", "15-30 hours", 2),
            ("very-high", "More than 30 hours", 1),
        ),
    ),
    "budget": (
        "What's your monthly budget for content and customer management?",
        "revenue_range",
        (
            ("low", "Less than $500", 1),
            ("moderate", "$500 - $2,000", 2),
            ("high", "$2,000 - $5,000", 3),
            ("enterprise", "More than $5,000", 4),
        ),
    ),
}

MAX_POINTS_PER_QUESTION = 4


def answer_labels(question_id: str) -> Dict[str, str]:
    _, _, options = ASSESSMENT_QUESTIONS[question_id]
    return {code: label for code, label, _ in options}


def _question_spec(question_id: str, name: str, key_alias: str) -> SemanticFieldSpec:
    question, semantic_key, _ = ASSESSMENT_QUESTIONS[question_id]
    return SemanticFieldSpec(
        semantic_key=semantic_key,
        preferred_external_name=name,
        data_type=DataType.SINGLE_OPTION,
        value_transform=answer_labels(question_id),
        applies_to=ASSESSMENT_ONLY,
        key_aliases=(key_alias,),
        name_aliases=(question,),
    )


SEMANTIC_FIELDS: Tuple[SemanticFieldSpec, ...] = (
    # Shared by both forms
    SemanticFieldSpec(
        semantic_key="form_type",
        preferred_external_name="Form Type",
        key_aliases=("trueflow_form_type",),
    ),
    SemanticFieldSpec(
        semantic_key="lead_score",
        preferred_external_name="Lead Score",
        data_type=DataType.NUMBER,
        key_aliases=("trueflow_lead_score",),
    ),
    SemanticFieldSpec(
        semantic_key="lead_quality",
        preferred_external_name="Lead Quality",
        key_aliases=("trueflow_lead_quality",),
    ),
    SemanticFieldSpec(
        semantic_key="submission_date",
        preferred_external_name="Submission Date",
        data_type=DataType.DATE,
        key_aliases=("trueflow_submission_date",),
    ),
    SemanticFieldSpec(
        semantic_key="business_name",
        preferred_external_name="Business Name",
        max_length=255,
        key_aliases=("trueflow_business_name",),
    ),
    SemanticFieldSpec(
        semantic_key="business_type",
        preferred_external_name="Business Type",
        data_type=DataType.SINGLE_OPTION,
        value_transform=BUSINESS_TYPES,
        key_aliases=("trueflow_business_type",),
        name_aliases=("Select Your Business Type",),
    ),
    SemanticFieldSpec(
        semantic_key="content_goals",
        preferred_external_name="Content Goals",
        data_type=DataType.MULTI_OPTION,
        value_transform=CONTENT_GOALS,
        key_aliases=("trueflow_content_goals",),
        name_aliases=("What Content Do You Want to Create?",),
    ),
    SemanticFieldSpec(
        semantic_key="integration_preferences",
        preferred_external_name="Integration Preferences",
        data_type=DataType.MULTI_OPTION,
        value_transform=INTEGRATIONS,
        key_aliases=("trueflow_integration_preferences",),
        name_aliases=("Integration Preferences (Optional)",),
    ),
    SemanticFieldSpec(
        semantic_key="selected_plan",
        preferred_external_name="Selected Plan",
        data_type=DataType.SINGLE_OPTION,
        value_transform=PLANS,
        key_aliases=("trueflow_selected_plan", "trueflow_pricing_plan"),
        name_aliases=("Choose Your Plan",),
    ),

    # Get-started wizard
    SemanticFieldSpec(
        semantic_key="monthly_leads",
        preferred_external_name="Monthly Leads",
        applies_to=ONBOARDING_ONLY,
        key_aliases=("trueflow_monthly_leads",),
        name_aliases=("Estimated total number of new leads per month",),
    ),
    SemanticFieldSpec(
        semantic_key="team_size",
        preferred_external_name="Team Size",
        applies_to=ONBOARDING_ONLY,
        key_aliases=("trueflow_team_size",),
        name_aliases=("How many team/staff members do you have?",),
    ),
    SemanticFieldSpec(
        semantic_key="current_tools",
        preferred_external_name="Current Tools",
        data_type=DataType.LONG_TEXT,
        applies_to=ONBOARDING_ONLY,
        key_aliases=("trueflow_current_tools",),
        name_aliases=("Which of the following do you currently use?",),
    ),
    SemanticFieldSpec(
        semantic_key="biggest_challenge",
        preferred_external_name="Biggest Challenge",
        data_type=DataType.LONG_TEXT,
        applies_to=ONBOARDING_ONLY,
        key_aliases=("trueflow_biggest_challenge",),
    ),

    # Readiness assessment
    _question_spec("current-content", "Current Content Creation", "trueflow_current_content"),
    _question_spec("content-volume", "Content Volume", "trueflow_content_volume"),
    _question_spec("crm-usage", "CRM Usage", "trueflow_crm_usage"),
    _question_spec("lead-response", "Lead Response Time", "trueflow_lead_response"),
    _question_spec("time-spent", "Time on Repetitive Tasks", "trueflow_time_spent"),
    _question_spec("budget", "Revenue Range", "trueflow_budget"),
    SemanticFieldSpec(
        semantic_key="assessment_score",
        preferred_external_name="Assessment Score",
        data_type=DataType.NUMBER,
        applies_to=ASSESSMENT_ONLY,
        key_aliases=("trueflow_assessment_score", "trueflow_score_percentage"),
        name_aliases=("Assessment Score Percentage",),
    ),
    SemanticFieldSpec(
        semantic_key="readiness_level",
        preferred_external_name="Readiness Level",
        applies_to=ASSESSMENT_ONLY,
        key_aliases=("trueflow_readiness_level",),
        name_aliases=("AI Readiness Level",),
    ),
    SemanticFieldSpec(
        semantic_key="recommended_plan",
        preferred_external_name="Recommended Plan",
        applies_to=ASSESSMENT_ONLY,
        key_aliases=("trueflow_recommended_plan", "trueflow_recommendation"),
        name_aliases=("AI Recommendation",),
    ),
    SemanticFieldSpec(
        semantic_key="assessment_answers",
        preferred_external_name="Assessment Answers",
        data_type=DataType.LONG_TEXT,
        applies_to=ASSESSMENT_ONLY,
        key_aliases=("trueflow_assessment_answers",),
        name_aliases=("Assessment Answers (Full Details)",),
    ),
)

# Free-text fields the engine may dump the whole submission into
NOTES_FIELD_NAMES = ("Notes", "Description", "Additional Info")

NOTES_FIELD = SemanticFieldSpec(
    semantic_key="notes",
    preferred_external_name=NOTES_FIELD_NAMES[0],
    data_type=DataType.LONG_TEXT,
    name_aliases=NOTES_FIELD_NAMES[1:],
)


def _index(specs) -> Dict[str, SemanticFieldSpec]:
    index = {}
    for spec in specs:
        if spec.semantic_key in index:
            raise ValueError(f"Duplicate semantic key in field catalog: {spec.semantic_key}")
        index[spec.semantic_key] = spec
    return index


FIELDS_BY_KEY = _index(SEMANTIC_FIELDS)


def specs_for(form_kind: FormKind) -> List[SemanticFieldSpec]:
    """Field specs that apply to a form, in catalog order."""
    return [spec for spec in SEMANTIC_FIELDS if spec.applies(form_kind)]


def get_spec(semantic_key: str):
    return FIELDS_BY_KEY.get(semantic_key)
