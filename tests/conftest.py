import os
import sys

import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from mapping.models import ExternalFieldDefinition


@pytest.fixture
def make_field():
    """Build a catalog entry the way the CRM reports it."""
    def _make(name, key=None, data_type="TEXT", field_id=None):
        return ExternalFieldDefinition.model_validate({
            "id": field_id or f"fld_{name.lower().replace(' ', '_')}",
            "name": name,
            "fieldKey": key,
            "dataType": data_type,
        })
    return _make


@pytest.fixture
def full_catalog(make_field):
    """A catalog provisioned with contact.<semantic_key> keys for the common fields."""
    return [
        make_field("Form Type", "contact.form_type"),
        make_field("Lead Score", "contact.lead_score", "NUMERICAL"),
        make_field("Lead Quality", "contact.lead_quality"),
        make_field("Submission Date", "contact.submission_date", "DATE"),
        make_field("Business Name", "contact.business_name"),
        make_field("Business Type", "contact.business_type", "SINGLE_OPTIONS"),
        make_field("Content Goals", "contact.content_goals", "MULTIPLE_OPTIONS"),
        make_field("Integration Preferences", "contact.integration_preferences", "MULTIPLE_OPTIONS"),
        make_field("Selected Plan", "contact.selected_plan", "SINGLE_OPTIONS"),
        make_field("Monthly Leads", "contact.monthly_leads"),
        make_field("Team Size", "contact.team_size"),
        make_field("Assessment Score", "contact.assessment_score", "NUMERICAL"),
        make_field("Readiness Level", "contact.readiness_level"),
        make_field("Notes", "contact.notes", "LARGE_TEXT"),
    ]


@pytest.fixture
def onboarding_payload():
    return {
        "firstName": "Jane",
        "lastName": "Doe",
        "email": "Jane.Doe@Example.com",
        "phone": "+1 555 0100",
        "businessName": "Doe Media",
        "businessType": "agency",
        "selectedPlan": "complete-system",
        "contentGoals": ["newsletters", "blogs", "social", "courses"],
        "integrations": ["gohighlevel", "mailchimp", "zapier"],
        "monthlyLeads": "50-100",
        "teamSize": "2-5",
        "submissionDate": "2024-03-01T12:30:00Z",
    }


@pytest.fixture
def assessment_payload():
    return {
        "firstName": "Sam",
        "lastName": "Lee",
        "email": "sam@example.com",
        "businessName": "Lee Coaching",
        "businessType": "coach",
        "answers": {
            "current-content": "manual",
            "content-volume": "minimal",
            "crm-usage": "spreadsheets",
            "lead-response": "days",
            "time-spent": "very-high",
            "budget": "low",
        },
        "submissionDate": "2024-03-02T08:00:00Z",
    }
