"""
Tests for the pure approval routing engine.

Tests cover:
- evaluate_condition: every operator, numeric coercion, missing values
- select_required_levels: mandatory levels united with matching rules
- evaluate_level: ``any`` versus ``all`` approval modes
- evaluate_routing_status: rejection blocking, pending / satisfied levels
- level_for_role: which pending level a role may sign
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from procurement_engines.routing import (
    evaluate_condition,
    evaluate_level,
    evaluate_routing_status,
    level_for_role,
    rule_matches,
    select_required_levels,
)
from procurement_kernel.domain.routing import (
    ApprovalAction,
    ApprovalDecision,
    ApprovalLevel,
    ApprovalMode,
    ConditionType,
    RoutingOperator,
    RoutingRule,
)


# =========================================================================
# Factory helpers
# =========================================================================


def make_levels() -> tuple[ApprovalLevel, ...]:
    return (
        ApprovalLevel(1, "Manager", ("procurement_manager",)),
        ApprovalLevel(2, "Director", ("procurement_director", "finance_director"), is_mandatory=False),
        ApprovalLevel(
            3, "Joint review", ("procurement_manager", "quality_manager"),
            approval_mode=ApprovalMode.ALL, is_mandatory=False,
        ),
    )


def make_rule(
    operator: RoutingOperator,
    value,
    target_levels: tuple[int, ...],
    condition_type: ConditionType = ConditionType.AMOUNT,
    field: str | None = None,
) -> RoutingRule:
    return RoutingRule(
        name="rule",
        condition_type=condition_type,
        operator=operator,
        value=value,
        target_levels=target_levels,
        field=field,
    )


def approve(role: str, level: int | None) -> ApprovalAction:
    return ApprovalAction(
        actor_id=uuid4(), actor_role=role, decision=ApprovalDecision.APPROVED, level_number=level,
    )


def reject(role: str, level: int | None) -> ApprovalAction:
    return ApprovalAction(
        actor_id=uuid4(), actor_role=role, decision=ApprovalDecision.REJECTED, level_number=level,
    )


# =========================================================================
# 1. evaluate_condition
# =========================================================================


class TestEvaluateCondition:

    @pytest.mark.parametrize(
        "operator, actual, expected, result",
        [
            (RoutingOperator.GT, Decimal("100001"), 100000, True),
            (RoutingOperator.GT, Decimal("100000"), 100000, False),
            (RoutingOperator.GTE, Decimal("100000"), "100000", True),
            (RoutingOperator.LT, 5, Decimal("10"), True),
            (RoutingOperator.LTE, Decimal("10.00"), 10, True),
            (RoutingOperator.EQ, "urgent", "urgent", True),
            (RoutingOperator.EQ, Decimal("10.0"), 10, True),
            (RoutingOperator.NE, "normal", "urgent", True),
            (RoutingOperator.IN, "C", ("C", "D"), True),
            (RoutingOperator.IN, "A", ("C", "D"), False),
            (RoutingOperator.NOT_IN, "A", ("C", "D"), True),
        ],
    )
    def test_operators(self, operator, actual, expected, result):
        assert evaluate_condition(operator, actual, expected) is result

    def test_missing_value_never_matches(self):
        assert evaluate_condition(RoutingOperator.NE, None, "x") is False

    def test_incomparable_types_do_not_raise(self):
        assert evaluate_condition(RoutingOperator.GT, "abc", 10) is False

    def test_rule_uses_explicit_field(self):
        rule = make_rule(
            RoutingOperator.EQ, "critical", (2,),
            condition_type=ConditionType.CUSTOM, field="priority",
        )

        assert rule_matches(rule, {"priority": "critical"})
        assert not rule_matches(rule, {"custom": "critical"})


# =========================================================================
# 2. select_required_levels
# =========================================================================


class TestSelectRequiredLevels:

    def test_mandatory_levels_only_when_no_rule_matches(self):
        rules = [make_rule(RoutingOperator.GTE, 100000, (1, 2))]

        assert select_required_levels(make_levels(), rules, {"amount": Decimal("5000")}) == (1,)

    def test_matching_rule_adds_target_levels(self):
        rules = [make_rule(RoutingOperator.GTE, 100000, (1, 2))]

        assert select_required_levels(make_levels(), rules, {"amount": Decimal("250000")}) == (1, 2)

    def test_several_matching_rules_are_united_and_sorted(self):
        rules = [
            make_rule(RoutingOperator.GTE, 100000, (2,)),
            make_rule(
                RoutingOperator.IN, ["C", "D"], (3,),
                condition_type=ConditionType.SUPPLIER_LEVEL,
            ),
        ]
        data = {"amount": Decimal("150000"), "supplier_level": "D"}

        assert select_required_levels(make_levels(), rules, data) == (1, 2, 3)

    def test_deterministic(self):
        rules = [make_rule(RoutingOperator.GT, 0, (3, 2))]
        data = {"amount": Decimal("1")}

        first = select_required_levels(make_levels(), rules, data)
        second = select_required_levels(make_levels(), rules, data)

        assert first == second == (1, 2, 3)


# =========================================================================
# 3. evaluate_level
# =========================================================================


class TestEvaluateLevel:

    def test_any_mode_needs_one_listed_role(self):
        level = make_levels()[1]

        assert evaluate_level(level, [approve("finance_director", 2)]).is_satisfied

    def test_unlisted_role_does_not_count(self):
        level = make_levels()[0]

        evaluation = evaluate_level(level, [approve("buyer", 1)])

        assert not evaluation.is_satisfied
        assert evaluation.missing_roles == ("procurement_manager",)

    def test_all_mode_needs_every_role(self):
        level = make_levels()[2]

        partial = evaluate_level(level, [approve("procurement_manager", 3)])
        full = evaluate_level(
            level, [approve("procurement_manager", 3), approve("quality_manager", 3)],
        )

        assert not partial.is_satisfied
        assert partial.missing_roles == ("quality_manager",)
        assert full.is_satisfied

    def test_approvals_on_other_levels_are_ignored(self):
        level = make_levels()[0]

        assert not evaluate_level(level, [approve("procurement_manager", 2)]).is_satisfied


# =========================================================================
# 4. evaluate_routing_status
# =========================================================================


class TestEvaluateRoutingStatus:

    def test_nothing_signed(self):
        evaluation = evaluate_routing_status(make_levels(), (1, 2), [])

        assert not evaluation.is_approved
        assert evaluation.pending_levels == (1, 2)
        assert evaluation.current_level == 1
        assert evaluation.reason == "0/2 levels approved"

    def test_partially_signed(self):
        evaluation = evaluate_routing_status(
            make_levels(), (1, 2), [approve("procurement_manager", 1)],
        )

        assert evaluation.satisfied_levels == (1,)
        assert evaluation.pending_levels == (2,)
        assert not evaluation.is_approved

    def test_fully_signed(self):
        evaluation = evaluate_routing_status(
            make_levels(),
            (1, 2),
            [approve("procurement_manager", 1), approve("procurement_director", 2)],
        )

        assert evaluation.is_approved
        assert evaluation.reason == "Approved"
        assert evaluation.current_level is None

    def test_single_rejection_blocks(self):
        evaluation = evaluate_routing_status(
            make_levels(),
            (1, 2),
            [approve("procurement_manager", 1), reject("finance_director", 2)],
        )

        assert evaluation.is_rejected
        assert not evaluation.is_approved

    def test_undefined_level_stays_pending(self):
        evaluation = evaluate_routing_status(make_levels(), (1, 9), [approve("procurement_manager", 1)])

        assert evaluation.pending_levels == (9,)


# =========================================================================
# 5. level_for_role
# =========================================================================


class TestLevelForRole:

    def test_first_pending_level_the_role_holds(self):
        assert level_for_role(make_levels(), (1, 2), "procurement_manager") == 1
        assert level_for_role(make_levels(), (1, 2), "finance_director") == 2

    def test_role_without_a_pending_level(self):
        assert level_for_role(make_levels(), (2,), "procurement_manager") is None
        assert level_for_role(make_levels(), (1,), None) is None

    def test_level_without_roles_accepts_anyone(self):
        levels = (ApprovalLevel(1, "Open", ()),)

        assert level_for_role(levels, (1,), None) == 1
