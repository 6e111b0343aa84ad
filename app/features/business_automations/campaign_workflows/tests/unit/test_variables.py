"""
Unit tests for {{variable}} substitution.
"""

import pytest

from app.features.business_automations.campaign_workflows.models import Prospect
from app.features.business_automations.campaign_workflows.services.variables import (
    AVAILABLE_VARIABLES,
    extract_prospect_variables,
    extract_variables,
    replace_variables,
)


@pytest.mark.unit
class TestReplaceVariables:

    def test_replaces_known_variables(self):
        result = replace_variables("Hi {{firstName}} at {{company}}!", {"firstName": "Ada", "company": "Analytical"})
        assert result == "Hi Ada at Analytical!"

    def test_missing_variable_keeps_token(self):
        assert replace_variables("Hi {{firstName}}", {}) == "Hi {{firstName}}"

    def test_empty_variable_keeps_token(self):
        assert replace_variables("Hi {{firstName}}", {"firstName": ""}) == "Hi {{firstName}}"

    def test_none_variable_keeps_token(self):
        assert replace_variables("{{title}}", {"title": None}) == "{{title}}"

    def test_repeated_tokens_all_replaced(self):
        assert replace_variables("{{name}}, {{name}}", {"name": "Ada"}) == "Ada, Ada"

    def test_non_word_tokens_are_left_alone(self):
        template = "{{first-name}} {{ name }}"
        assert replace_variables(template, {"first-name": "x", "name": "Ada"}) == template

    def test_empty_template(self):
        assert replace_variables("", {"name": "Ada"}) == ""


@pytest.mark.unit
class TestExtractProspectVariables:

    def test_splits_name_when_parts_missing(self):
        prospect = Prospect(name="Ada King Lovelace", company="Analytical Engines", email="ada@example.com")
        variables = extract_prospect_variables(prospect)

        assert variables["name"] == "Ada King Lovelace"
        assert variables["firstName"] == "Ada"
        assert variables["lastName"] == "King Lovelace"
        assert variables["company"] == "Analytical Engines"
        assert variables["email"] == "ada@example.com"

    def test_explicit_name_parts_win(self):
        prospect = Prospect(name="A. Lovelace", first_name="Augusta", last_name="Byron")
        variables = extract_prospect_variables(prospect)

        assert variables["firstName"] == "Augusta"
        assert variables["lastName"] == "Byron"

    def test_missing_attributes_become_empty_strings(self):
        variables = extract_prospect_variables(Prospect())

        assert variables["name"] == ""
        assert variables["firstName"] == ""
        assert variables["lastName"] == ""
        assert variables["phone"] == ""

    def test_linkedin_comes_from_profile_url(self):
        prospect = Prospect(name="Ada", linkedin_url="https://www.linkedin.com/in/ada")
        assert extract_prospect_variables(prospect)["linkedin"] == "https://www.linkedin.com/in/ada"

    def test_available_variables_match_extracted_keys(self):
        assert set(AVAILABLE_VARIABLES) == set(extract_prospect_variables(Prospect()).keys())

    def test_unfilled_variables_survive_substitution(self):
        variables = extract_prospect_variables(Prospect(name="Ada"))
        assert replace_variables("{{firstName}} / {{company}}", variables) == "Ada / {{company}}"


@pytest.mark.unit
class TestExtractVariables:

    def test_distinct_names_in_order_of_first_appearance(self):
        template = "{{company}} {{firstName}} {{company}} {{title}}"
        assert extract_variables(template) == ["company", "firstName", "title"]

    def test_no_variables(self):
        assert extract_variables("Plain text") == []
