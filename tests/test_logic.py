"""Tests for the logic vocabulary."""

import pytest

from seedroute.logic import (
    And,
    AndSlot,
    Expr,
    Hard,
    HardAnd,
    HardOr,
    NodeKind,
    Or,
    OrSlot,
    Ref,
    Root,
    filter_hard,
    hard_under_and,
    is_satisfied,
    iter_refs,
)


class TestConstructors:
    """Tests for the And/Or/Root/Hard constructors."""

    def test_strings_become_refs(self):
        """Plain strings are coerced into references."""
        node = And("a", "b")
        assert node.kind is NodeKind.AND
        assert node.terms == (Ref("a"), Ref("b"))
        assert not node.is_slot
        assert not node.hard

    def test_nested_definition_becomes_expr(self):
        """A definition used as a term becomes a nested expression."""
        node = Or("a", And("b", "c"))
        assert node.terms[1] == Expr(NodeKind.AND, (Ref("b"), Ref("c")))

    def test_slot_constructors(self):
        assert AndSlot("a").is_slot
        assert AndSlot("a").kind is NodeKind.AND
        assert OrSlot("a").is_slot
        assert OrSlot("a").kind is NodeKind.OR

    def test_root(self):
        assert Root().kind is NodeKind.ROOT

    def test_hard_constructors(self):
        """Hard variants mark the node and nested terms hard-only."""
        assert HardAnd("a").hard
        assert HardOr("a").hard
        assert Hard is HardAnd
        nested = Or("a", HardOr("b"))
        assert nested.terms[1] == Expr(NodeKind.OR, (Ref("b"),), hard=True)

    def test_root_cannot_be_nested(self):
        with pytest.raises(ValueError):
            And(Root())

    def test_slot_cannot_be_nested(self):
        with pytest.raises(ValueError):
            Or(AndSlot("a"))

    def test_invalid_term_type(self):
        with pytest.raises(TypeError):
            And(3)


def test_iter_refs_depth_first():
    """References are yielded depth first in declaration order."""
    node = Or("a", And("b", Or("c")), "d")
    assert list(iter_refs(node.terms)) == ["a", "b", "c", "d"]


class TestFilterHard:
    """Tests for hard-only term removal."""

    def test_hard_ref_removed_when_disabled(self):
        assert filter_hard(Ref("a", hard=True), False) is None

    def test_hard_ref_kept_when_enabled(self):
        assert filter_hard(Ref("a", hard=True), True) == Ref("a", hard=True)

    def test_nested_hard_expr_removed(self):
        """Hard sub-expressions disappear from their parent."""
        term = Expr(
            NodeKind.OR,
            (Ref("a"), Expr(NodeKind.AND, (Ref("b"),), hard=True)),
        )
        assert filter_hard(term, False) == Expr(NodeKind.OR, (Ref("a"),))
        assert filter_hard(term, True) == term


class TestHardUnderAnd:
    """Tests for detecting hard terms that an AND would lose."""

    def test_hard_under_or_allowed(self):
        node = Or("cane", Hard())
        assert hard_under_and(node.kind, node.terms) == []

    def test_hard_ref_under_and(self):
        node = And("start", Ref("jump", hard=True))
        assert hard_under_and(node.kind, node.terms) == [Ref("jump", hard=True)]

    def test_nested_and(self):
        """Hard terms under a nested AND are found too."""
        node = Or("flippers", And("feather", HardOr("jump")))
        found = hard_under_and(node.kind, node.terms)
        assert found == [Expr(NodeKind.OR, (Ref("jump"),), hard=True)]

    def test_hard_node_terms_allowed(self):
        """A node that is itself hard-only may list plain requirements."""
        node = HardAnd("satchel", "scent seeds")
        assert hard_under_and(node.kind, node.terms) == []


class TestIsSatisfied:
    """Tests for formula evaluation."""

    def reached(self, name: str) -> bool:
        return name in {"a", "c"}

    def test_empty_and_is_true(self):
        assert is_satisfied(NodeKind.AND, (), self.reached)

    def test_empty_or_is_false(self):
        assert not is_satisfied(NodeKind.OR, (), self.reached)

    def test_root_is_always_true(self):
        assert is_satisfied(NodeKind.ROOT, (Ref("b"),), self.reached)

    def test_and_requires_all(self):
        assert is_satisfied(NodeKind.AND, And("a", "c").terms, self.reached)
        assert not is_satisfied(NodeKind.AND, And("a", "b").terms, self.reached)

    def test_or_requires_any(self):
        assert is_satisfied(NodeKind.OR, Or("b", "c").terms, self.reached)
        assert not is_satisfied(NodeKind.OR, Or("b", "d").terms, self.reached)

    def test_nested(self):
        terms = And("a", Or("b", And("c"))).terms
        assert is_satisfied(NodeKind.AND, terms, self.reached)
