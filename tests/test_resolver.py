from mapping.catalog import FIELDS_BY_KEY, SEMANTIC_FIELDS, get_spec
from mapping.models import DataType, ExternalFieldDefinition, SemanticFieldSpec
from mapping.resolver import missing_fields, resolve, resolve_by_name


class TestResolve:
    """Key match, then normalized name, then case-insensitive name; never substrings."""

    def test_matches_namespaced_key(self, make_field):
        catalog = [make_field("Something Else", "contact.business_type")]
        field = resolve(get_spec("business_type"), catalog)
        assert field is catalog[0]

    def test_key_alias_matches(self, make_field):
        catalog = [make_field("Old Lead Score", "contact.trueflow_lead_score")]
        assert resolve(get_spec("lead_score"), catalog) is catalog[0]

    def test_key_beats_name(self, make_field):
        by_name = make_field("Business Type", None, field_id="by_name")
        by_key = make_field("Biz Category", "contact.business_type", field_id="by_key")
        assert resolve(get_spec("business_type"), [by_name, by_key]).id == "by_key"

    def test_normalized_name_without_key(self, make_field):
        catalog = [make_field("business   type:", None)]
        assert resolve(get_spec("business_type"), catalog) is catalog[0]

    def test_name_alias_matches_question_text(self, make_field):
        catalog = [make_field("How do you currently manage customer relationships?", None)]
        assert resolve(get_spec("crm_usage"), catalog) is catalog[0]

    def test_casefold_name_for_names_that_normalize_away(self):
        spec = SemanticFieldSpec(semantic_key="emoji", preferred_external_name="★★")
        catalog = [ExternalFieldDefinition(id="1", display_name="★★")]
        assert resolve(spec, catalog) is catalog[0]

    def test_no_substring_matching(self, make_field):
        catalog = [make_field("Primary Business Type Selection", None)]
        assert resolve(get_spec("business_type"), catalog) is None

    def test_empty_catalog(self):
        assert resolve(get_spec("lead_score"), []) is None


class TestResolveByName:

    def test_tries_names_in_order(self, make_field):
        catalog = [make_field("Additional Info"), make_field("Description")]
        assert resolve_by_name(("Notes", "Description", "Additional Info"), catalog).display_name == "Description"

    def test_ignores_keys(self, make_field):
        catalog = [make_field("Free Text", "contact.notes")]
        assert resolve_by_name(("Notes",), catalog) is None


class TestMissingFields:

    def test_everything_missing_for_empty_catalog(self):
        assert missing_fields([]) == [spec.semantic_key for spec in SEMANTIC_FIELDS]

    def test_reports_only_unresolvable(self, full_catalog):
        missing = missing_fields(full_catalog)
        assert "business_type" not in missing
        assert "biggest_challenge" in missing
        assert "assessment_answers" in missing

    def test_catalog_keys_are_unique(self):
        assert len(FIELDS_BY_KEY) == len(SEMANTIC_FIELDS)

    def test_unknown_data_type_defaults_to_text(self):
        field = ExternalFieldDefinition.model_validate({"id": 7, "name": "X", "dataType": "SIGNATURE"})
        assert field.data_type == DataType.TEXT
        assert field.id == "7"
