"""
ARR-based business context.

When a simulation opts in with `businessContext: true`, its logic can call
a fixed library of deterministic financial helpers and read budget
constants derived from the annual recurring revenue parameters. Configs
lacking the ARR parameters get them injected, together with a
"Business Context" parameter group.
"""

from copy import deepcopy
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Sequence

from ..errors import EvaluationError


ARR_KEY = 'annualRecurringRevenue'
BUDGET_PERCENT_KEY = 'budgetPercent'
DEFAULT_BUDGET_PERCENT = 10.0

# Returned by payback/runway helpers when the denominator is not positive
NEVER = 999.0

ARR_PARAMETER: Dict[str, Any] = {
    'key': ARR_KEY,
    'label': 'Annual Recurring Revenue (ARR)',
    'type': 'number',
    'default': 5_000_000,
    'min': 100_000,
    'max': 1_000_000_000,
    'step': 50_000,
    'description': "Company's annual recurring revenue for strategic investment planning",
}

BUDGET_PERCENT_PARAMETER: Dict[str, Any] = {
    'key': BUDGET_PERCENT_KEY,
    'label': 'Budget Allocation (% of ARR)',
    'type': 'number',
    'default': 10,
    'min': 1,
    'max': 50,
    'step': 0.5,
    'description': 'Budget as percentage of ARR for this strategic analysis',
}

BUSINESS_CONTEXT_GROUP: Dict[str, Any] = {
    'name': 'Business Context',
    'description': 'Company financial context for strategic decision-making',
    'parameters': [ARR_KEY, BUDGET_PERCENT_KEY],
}


# =============================================================================
# Helper Functions
# =============================================================================

def calculate_roi(investment: float, returns: float, timeframe: float = 1) -> float:
    """ROI in percent per timeframe; 0 for a non-positive investment."""
    if investment <= 0:
        return 0.0
    return (returns - investment) / investment * 100 / timeframe


def calculate_payback_period(investment: float, monthly_returns: float) -> float:
    """Months to recover `investment`."""
    if monthly_returns <= 0:
        return NEVER
    return investment / monthly_returns


def calculate_runway(current_cash: float, monthly_burn_rate: float) -> float:
    """Months of cash left at the given burn."""
    if monthly_burn_rate <= 0:
        return NEVER
    return current_cash / monthly_burn_rate


def calculate_npv(cash_flows: Sequence[float], discount_rate: float) -> float:
    """Net present value; the first cash flow is year 0 and is not discounted."""
    return sum(
        cash_flow / (1 + discount_rate) ** year
        for year, cash_flow in enumerate(cash_flows)
    )


def calculate_cac(marketing_spend: float, customers_acquired: float) -> float:
    """Customer acquisition cost; 0 when nobody was acquired."""
    if customers_acquired <= 0:
        return 0.0
    return marketing_spend / customers_acquired


BUSINESS_FUNCTIONS: Dict[str, Callable] = {
    'calculate_roi': calculate_roi,
    'calculate_payback_period': calculate_payback_period,
    'calculate_runway': calculate_runway,
    'calculate_npv': calculate_npv,
    'calculate_cac': calculate_cac,
}

BUSINESS_CONSTANTS = ('arr_budget', 'monthly_budget', 'quarterly_budget')


# =============================================================================
# Context
# =============================================================================

@dataclass(frozen=True)
class BusinessContext:
    """Budget constants derived from the ARR bindings of one run."""
    arr_budget: float
    monthly_budget: float
    quarterly_budget: float

    @classmethod
    def from_arr(cls, arr: float, budget_percent: float = DEFAULT_BUDGET_PERCENT) -> 'BusinessContext':
        arr_budget = arr * budget_percent / 100
        return cls(
            arr_budget=arr_budget,
            monthly_budget=arr_budget / 12,
            quarterly_budget=arr_budget / 4,
        )

    @classmethod
    def from_bindings(cls, bindings: Mapping[str, Any]) -> 'BusinessContext':
        """
        Derive the context from parameter bindings.

        Raises:
            EvaluationError: If the ARR binding is absent
        """
        if ARR_KEY not in bindings:
            raise EvaluationError(f"business context requires the '{ARR_KEY}' parameter")
        budget_percent = bindings.get(BUDGET_PERCENT_KEY) or DEFAULT_BUDGET_PERCENT
        return cls.from_arr(float(bindings[ARR_KEY]), float(budget_percent))

    def constants(self) -> Dict[str, float]:
        return {
            'arr_budget': self.arr_budget,
            'monthly_budget': self.monthly_budget,
            'quarterly_budget': self.quarterly_budget,
        }


def enhance_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Return a copy of `config` with business-context parameters injected.

    Configs without `businessContext: true` are returned unchanged (copied).
    The ARR and budget parameters are prepended only when missing.
    """
    enhanced = deepcopy(config)
    if not enhanced.get('businessContext'):
        return enhanced

    keys = [p['key'] for p in enhanced.get('parameters', [])]
    injected = []
    if ARR_KEY not in keys:
        injected.append(deepcopy(ARR_PARAMETER))
    if BUDGET_PERCENT_KEY not in keys:
        injected.append(deepcopy(BUDGET_PERCENT_PARAMETER))
    if not injected:
        return enhanced

    enhanced['parameters'] = injected + enhanced.get('parameters', [])
    if ARR_KEY not in keys:
        group = deepcopy(BUSINESS_CONTEXT_GROUP)
        group['parameters'] = [p['key'] for p in injected]
        enhanced['groups'] = [group] + enhanced.get('groups', [])
    return enhanced
