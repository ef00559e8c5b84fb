"""Policy evaluator interface and implementations."""

from sqlwarden.evaluator.base import PolicyEvaluator
from sqlwarden.evaluator.http import HttpPolicyEvaluator

__all__ = ["HttpPolicyEvaluator", "PolicyEvaluator"]
