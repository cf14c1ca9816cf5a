"""
Tests for the credit limit decision
"""
import pytest

from app.domain.services.credit_evaluator import CreditDecision, evaluate


class TestEvaluate:

    @pytest.mark.unit
    def test_accepts_within_limit(self):
        assert evaluate(0, 1000, 500) == CreditDecision(accepted=True, new_credit=500)

    @pytest.mark.unit
    def test_accepts_exactly_at_limit(self):
        assert evaluate(600, 1000, 400) == CreditDecision(accepted=True, new_credit=1000)

    @pytest.mark.unit
    def test_rejects_over_limit(self):
        decision = evaluate(600, 1000, 401)
        assert decision.accepted is False
        assert decision.new_credit == 1001

    @pytest.mark.unit
    def test_zero_amount_is_accepted(self):
        assert evaluate(1000, 1000, 0).accepted is True

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "credit,limit,amount",
        [(0, 0, 1), (10**12, 10**12 + 5, 6), (999, 1000, 2)],
    )
    def test_rejection_boundaries(self, credit, limit, amount):
        assert evaluate(credit, limit, amount).accepted is False
