"""
Unit tests for condition expressions.

Tests cover:
- Rendering to DynamoDB request parameters
- Evaluation against stored records
- Combining conditions
"""

from entmap.expressions import And, AttributeEquals, AttributeNotExists, all_of


class TestRender:
    """Tests for DynamoDB rendering."""

    def test_attribute_not_exists(self):
        rendered = AttributeNotExists("id").render()

        assert rendered.expression == "attribute_not_exists(#n0)"
        assert rendered.names == {"#n0": "id"}
        assert rendered.values == {}

    def test_attribute_equals(self):
        rendered = AttributeEquals("version", 3).render()

        assert rendered.expression == "#n0 = :v0"
        assert rendered.names == {"#n0": "version"}
        assert rendered.values == {":v0": {"N": "3"}}

    def test_and(self):
        rendered = all_of(AttributeNotExists("id"), AttributeEquals("version", 3)).render()

        assert rendered.expression == "(attribute_not_exists(#n0) AND #n1 = :v0)"
        assert rendered.names == {"#n0": "id", "#n1": "version"}
        assert rendered.values == {":v0": {"N": "3"}}

    def test_repeated_attribute_shares_placeholder(self):
        cond = And((AttributeNotExists("version"), AttributeEquals("version", 1)))

        rendered = cond.render()

        assert rendered.names == {"#n0": "version"}
        assert rendered.expression == "(attribute_not_exists(#n0) AND #n0 = :v0)"

    def test_to_request_without_values(self):
        params = AttributeNotExists("id").render().to_request()

        assert params == {
            "ConditionExpression": "attribute_not_exists(#n0)",
            "ExpressionAttributeNames": {"#n0": "id"},
        }

    def test_to_request_with_values(self):
        params = AttributeEquals("version", 2).render().to_request()

        assert params["ExpressionAttributeValues"] == {":v0": {"N": "2"}}


class TestEvaluate:
    """Tests for in-process evaluation."""

    def test_not_exists_on_missing_record(self):
        assert AttributeNotExists("id").evaluate(None) is True

    def test_not_exists_on_present_attribute(self):
        assert AttributeNotExists("id").evaluate({"id": {"S": "w1"}}) is False

    def test_not_exists_on_missing_attribute(self):
        assert AttributeNotExists("version").evaluate({"id": {"S": "w1"}}) is True

    def test_equals_matches(self):
        assert AttributeEquals("version", 2).evaluate({"version": {"N": "2"}}) is True

    def test_equals_mismatch(self):
        assert AttributeEquals("version", 1).evaluate({"version": {"N": "2"}}) is False

    def test_equals_on_missing_record(self):
        assert AttributeEquals("version", 1).evaluate(None) is False

    def test_and_requires_all(self):
        cond = all_of(AttributeEquals("version", 2), AttributeNotExists("deleted"))

        assert cond.evaluate({"version": {"N": "2"}}) is True
        assert cond.evaluate({"version": {"N": "2"}, "deleted": {"BOOL": True}}) is False


class TestAllOf:
    """Tests for all_of()."""

    def test_no_conditions(self):
        assert all_of() is None

    def test_single_condition_unwrapped(self):
        cond = AttributeNotExists("id")

        assert all_of(cond) is cond

    def test_multiple_conditions(self):
        cond = all_of(AttributeNotExists("id"), AttributeNotExists("version"))

        assert isinstance(cond, And)
        assert len(cond.conditions) == 2
