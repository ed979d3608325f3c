"""
procurement_engines.routing -- Pure approval routing evaluation.

Responsibility:
    Decide which approval levels a specific document instance must pass
    (routing-rule selection), and whether the approver actions recorded so
    far satisfy those levels.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import procurement_kernel/domain/ types.

Invariants enforced:
    - Deterministic selection: the required level set for a given
      (document data, levels, rules) triple is always the same sorted
      tuple -- mandatory levels united with every matching rule's
      ``target_levels``.
    - ``any`` levels need one approval from a holder of any listed role;
      ``all`` levels need one approval per distinct listed role.
    - A single rejection on any level blocks the whole document.
    - Non-mandatory levels that no rule selects are skipped.

Failure modes:
    - A rule whose operand cannot be compared with the document value
      (missing key, incomparable types) does not match; it never raises.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from decimal import Decimal, InvalidOperation
from typing import Any

from procurement_engines.tracer import traced_engine
from procurement_kernel.domain.routing import (
    ApprovalAction,
    ApprovalDecision,
    ApprovalLevel,
    ApprovalMode,
    LevelEvaluation,
    RoutingEvaluation,
    RoutingOperator,
    RoutingRule,
)


def evaluate_condition(operator: RoutingOperator, actual: Any, expected: Any) -> bool:
    """Compare a document value against a rule operand.

    Numeric-looking operands are compared as Decimals so ``"50000"``
    and ``50000`` behave the same.
    """
    if actual is None:
        return False

    if operator in (RoutingOperator.IN, RoutingOperator.NOT_IN):
        members = expected if isinstance(expected, (list, tuple, set, frozenset)) else [expected]
        contained = any(_equals(actual, member) for member in members)
        return contained if operator == RoutingOperator.IN else not contained

    if operator == RoutingOperator.EQ:
        return _equals(actual, expected)
    if operator == RoutingOperator.NE:
        return not _equals(actual, expected)

    left, right = _comparable(actual), _comparable(expected)
    try:
        if operator == RoutingOperator.GT:
            return left > right
        if operator == RoutingOperator.GTE:
            return left >= right
        if operator == RoutingOperator.LT:
            return left < right
        if operator == RoutingOperator.LTE:
            return left <= right
    except TypeError:
        return False
    return False


def rule_matches(rule: RoutingRule, document_data: Mapping[str, Any]) -> bool:
    return evaluate_condition(rule.operator, document_data.get(rule.data_key), rule.value)


@traced_engine("approval_routing", "1.0", fingerprint_fields=("document_data",))
def select_required_levels(
    levels: Sequence[ApprovalLevel],
    rules: Sequence[RoutingRule],
    document_data: Mapping[str, Any],
) -> tuple[int, ...]:
    """Levels this document must pass, ascending.

    Args:
        levels: The workflow's levels.
        rules: The workflow's routing rules.
        document_data: Values keyed by condition type (``amount`` ...)
            or by a rule's explicit ``field``.
    """
    required = {level.level_number for level in levels if level.is_mandatory}
    for rule in rules:
        if rule_matches(rule, document_data):
            required.update(rule.target_levels)
    return tuple(sorted(required))


def evaluate_level(level: ApprovalLevel, actions: Sequence[ApprovalAction]) -> LevelEvaluation:
    """Is ``level`` satisfied by the approvals recorded against it?"""
    approving_roles = {
        a.actor_role
        for a in actions
        if a.decision == ApprovalDecision.APPROVED
        and a.level_number == level.level_number
        and (not level.approver_roles or a.actor_role in level.approver_roles)
    }

    if level.approval_mode == ApprovalMode.ALL and level.approver_roles:
        missing = tuple(r for r in level.approver_roles if r not in approving_roles)
        return LevelEvaluation(
            level_number=level.level_number,
            is_satisfied=not missing,
            missing_roles=missing,
        )

    satisfied = bool(approving_roles)
    return LevelEvaluation(
        level_number=level.level_number,
        is_satisfied=satisfied,
        missing_roles=() if satisfied else tuple(level.approver_roles),
    )


def evaluate_routing_status(
    levels: Sequence[ApprovalLevel],
    required_levels: Sequence[int],
    actions: Sequence[ApprovalAction],
) -> RoutingEvaluation:
    """Overall approval state given the required levels and recorded actions."""
    required = tuple(sorted(required_levels))

    for action in actions:
        if action.decision == ApprovalDecision.REJECTED:
            return RoutingEvaluation(
                required_levels=required,
                is_rejected=True,
                reason=f"Rejected by {action.actor_id}",
            )

    by_number = {level.level_number: level for level in levels}
    satisfied: list[int] = []
    pending: list[int] = []
    for number in required:
        level = by_number.get(number)
        if level is None:
            # A rule targeting an undefined level cannot be satisfied.
            pending.append(number)
            continue
        if evaluate_level(level, actions).is_satisfied:
            satisfied.append(number)
        else:
            pending.append(number)

    is_approved = not pending
    return RoutingEvaluation(
        required_levels=required,
        satisfied_levels=tuple(satisfied),
        pending_levels=tuple(pending),
        is_approved=is_approved,
        reason="Approved" if is_approved else f"{len(satisfied)}/{len(required)} levels approved",
    )


def level_for_role(
    levels: Sequence[ApprovalLevel],
    pending_levels: Sequence[int],
    actor_role: str | None,
) -> int | None:
    """First pending level the role may sign, or None."""
    by_number = {level.level_number: level for level in levels}
    for number in sorted(pending_levels):
        level = by_number.get(number)
        if level is None:
            continue
        if not level.approver_roles or actor_role in level.approver_roles:
            return number
    return None


def _comparable(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float, Decimal)):
        return Decimal(str(value))
    if isinstance(value, str):
        try:
            return Decimal(value)
        except InvalidOperation:
            return value
    return value


def _equals(left: Any, right: Any) -> bool:
    a, b = _comparable(left), _comparable(right)
    if type(a) is type(b):
        return a == b
    return str(left) == str(right)
