"""
Document lifecycle and conversion rule tables.

Verifies:
- Forward-only transitions per stage
- Conversion-only statuses cannot be reached manually
- Terminal statuses
- The four conversion rules and their lookup
"""

import pytest

from commerce_kernel.domain.conversion import (
    PURCHASE_ORDER_TO_RECEIPT,
    PURCHASE_QUOTATION_TO_ORDER,
    RULE_REGISTRY,
    SALES_ORDER_TO_INVOICE,
    SALES_QUOTATION_TO_ORDER,
    rule_for,
    series_key,
)
from commerce_kernel.domain.documents import (
    STAGE_STATUSES,
    DocumentStatus,
    Side,
    Stage,
    terminal_stage,
)
from commerce_kernel.domain.lifecycle import (
    INITIAL_STATUS,
    TRANSITIONS,
    allowed_transitions,
    check_manual_transition,
    is_terminal,
)
from commerce_kernel.exceptions import InvalidStateError, InvalidTransitionError

S = DocumentStatus


class TestTransitionTable:
    def test_every_transition_uses_statuses_of_its_stage(self):
        for t in TRANSITIONS:
            assert t.from_status in STAGE_STATUSES[t.stage]
            assert t.to_status in STAGE_STATUSES[t.stage]

    def test_no_transition_returns_to_initial_status(self):
        for t in TRANSITIONS:
            assert t.to_status != INITIAL_STATUS[t.stage]

    def test_no_cycles(self):
        for stage in Stage:
            edges = {(t.from_status, t.to_status) for t in TRANSITIONS if t.stage == stage}
            for a, b in edges:
                assert (b, a) not in edges

    def test_quotation_manual_moves(self):
        assert set(allowed_transitions(Stage.QUOTATION, S.PENDING)) == {S.ACCEPTED, S.REJECTED}
        assert allowed_transitions(Stage.QUOTATION, S.ACCEPTED) == (S.REJECTED,)

    def test_accepted_quotation_converts_only_via_conversion(self):
        assert S.CONVERTED not in allowed_transitions(Stage.QUOTATION, S.ACCEPTED)
        assert S.CONVERTED in allowed_transitions(
            Stage.QUOTATION, S.ACCEPTED, include_conversion=True,
        )

    @pytest.mark.parametrize("stage, status", [
        (Stage.QUOTATION, S.CONVERTED),
        (Stage.QUOTATION, S.REJECTED),
        (Stage.ORDER, S.INVOICED),
        (Stage.ORDER, S.RECEIVED),
        (Stage.ORDER, S.CANCELLED),
        (Stage.INVOICE, S.CANCELLED),
        (Stage.RECEIPT, S.CANCELLED),
    ])
    def test_terminal_statuses(self, stage, status):
        assert is_terminal(stage, status)

    def test_issued_invoice_is_not_terminal(self):
        assert not is_terminal(Stage.INVOICE, S.ISSUED)


class TestManualTransitionCheck:
    def test_legal_move_passes(self):
        check_manual_transition("doc", Stage.ORDER, S.PENDING, S.CONFIRMED)

    def test_skipping_a_step_is_rejected(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            check_manual_transition("doc", Stage.ORDER, S.PENDING, S.SHIPPED)

        error = exc_info.value
        assert error.actual == "pending"
        assert error.requested == "shipped"
        assert set(error.expected) == {"confirmed", "cancelled"}

    def test_backward_move_is_rejected(self):
        with pytest.raises(InvalidTransitionError):
            check_manual_transition("doc", Stage.ORDER, S.SHIPPED, S.CONFIRMED)

    def test_conversion_only_status_is_rejected(self):
        with pytest.raises(InvalidTransitionError):
            check_manual_transition("doc", Stage.ORDER, S.SHIPPED, S.INVOICED)

    def test_converted_quotation_cannot_be_rejected(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            check_manual_transition("doc", Stage.QUOTATION, S.CONVERTED, S.REJECTED)
        assert exc_info.value.expected == ()

    def test_invalid_transition_is_an_invalid_state(self):
        with pytest.raises(InvalidStateError) as exc_info:
            check_manual_transition("doc", Stage.INVOICE, S.CANCELLED, S.ISSUED)
        assert exc_info.value.code == "INVALID_TRANSITION"


class TestConversionRules:
    def test_registry_holds_four_rules(self):
        assert set(RULE_REGISTRY.values()) == {
            SALES_QUOTATION_TO_ORDER,
            SALES_ORDER_TO_INVOICE,
            PURCHASE_QUOTATION_TO_ORDER,
            PURCHASE_ORDER_TO_RECEIPT,
        }

    @pytest.mark.parametrize("side, stage, expected", [
        (Side.SALES, Stage.QUOTATION, SALES_QUOTATION_TO_ORDER),
        (Side.SALES, Stage.ORDER, SALES_ORDER_TO_INVOICE),
        (Side.PURCHASE, Stage.QUOTATION, PURCHASE_QUOTATION_TO_ORDER),
        (Side.PURCHASE, Stage.ORDER, PURCHASE_ORDER_TO_RECEIPT),
    ])
    def test_rule_for(self, side, stage, expected):
        assert rule_for(side, stage) is expected

    def test_no_rule_from_terminal_stage(self):
        with pytest.raises(KeyError):
            rule_for(Side.SALES, Stage.INVOICE)

    def test_quotation_rules_require_accepted(self):
        assert SALES_QUOTATION_TO_ORDER.expected_statuses() == ("accepted",)
        assert PURCHASE_QUOTATION_TO_ORDER.eligible_statuses == frozenset({S.ACCEPTED})

    def test_order_rules_accept_in_flight_orders(self):
        assert SALES_ORDER_TO_INVOICE.expected_statuses() == (
            "confirmed", "in_progress", "shipped",
        )
        assert S.PENDING not in PURCHASE_ORDER_TO_RECEIPT.eligible_statuses

    def test_only_receipts_signal_inventory(self):
        signalling = [r for r in RULE_REGISTRY.values() if r.signals_inventory]
        assert signalling == [PURCHASE_ORDER_TO_RECEIPT]

    def test_rules_follow_the_lifecycle(self):
        for rule in RULE_REGISTRY.values():
            for status in rule.eligible_statuses:
                assert rule.converted_status in allowed_transitions(
                    rule.source_stage, status, include_conversion=True,
                )
            assert rule.target_status == INITIAL_STATUS[rule.target_stage]

    def test_series_is_side_and_target_stage(self):
        assert SALES_ORDER_TO_INVOICE.series == "sales_invoice"
        assert series_key(Side.PURCHASE, Stage.RECEIPT) == "purchase_receipt"

    def test_terminal_stage(self):
        assert terminal_stage(Side.SALES) == Stage.INVOICE
        assert terminal_stage(Side.PURCHASE) == Stage.RECEIPT
