"""
Built-in simulations.

Declared in the same form as a user's config file and built through
Simulation.from_config, so they pass the same validation as any other
simulation.
"""

from copy import deepcopy
from typing import Any, Dict

from ..model import Simulation


AI_INVESTMENT_ROI: Dict[str, Any] = {
    'id': 'ai-investment-roi',
    'name': 'AI Investment ROI',
    'category': 'Finance',
    'description': 'Simulate return on investment for AI tool implementations with uncertainty modeling',
    'version': '2.0.0',
    'tags': ['ai', 'finance', 'roi', 'investment', 'productivity'],
    'parameters': [
        {'key': 'initialInvestment', 'label': 'Initial Investment ($)', 'type': 'number',
         'default': 100000, 'min': 10000, 'max': 10000000, 'step': 10000,
         'description': 'Total upfront investment in AI tools and implementation'},
        {'key': 'implementationTime', 'label': 'Implementation Time (months)', 'type': 'number',
         'default': 6, 'min': 1, 'max': 24, 'step': 1,
         'description': 'Expected time to fully implement the AI solution'},
        {'key': 'productivityGain', 'label': 'Productivity Gain (%)', 'type': 'number',
         'default': 0.15, 'min': 0, 'max': 1, 'step': 0.01,
         'description': 'Expected productivity increase as a decimal (0.15 = 15%)'},
        {'key': 'costSaving', 'label': 'Cost Saving (%)', 'type': 'number',
         'default': 0.08, 'min': 0, 'max': 0.5, 'step': 0.01,
         'description': 'Expected cost reduction as a decimal (0.08 = 8%)'},
        {'key': 'marketGrowth', 'label': 'Market Growth Rate (%)', 'type': 'number',
         'default': 0.12, 'min': -0.1, 'max': 0.5, 'step': 0.01,
         'description': 'Annual market growth rate'},
        {'key': 'adoptionRate', 'label': 'Employee Adoption Rate (%)', 'type': 'number',
         'default': 0.7, 'min': 0.1, 'max': 1, 'step': 0.05,
         'description': 'Expected employee adoption rate (0.7 = 70%)'},
        {'key': 'maintenanceCost', 'label': 'Annual Maintenance Cost (%)', 'type': 'number',
         'default': 0.1, 'min': 0.05, 'max': 0.3, 'step': 0.01,
         'description': 'Annual maintenance as % of initial investment'},
        {'key': 'riskFactor', 'label': 'Risk/Uncertainty Factor', 'type': 'number',
         'default': 0.2, 'min': 0.05, 'max': 0.5, 'step': 0.05,
         'description': 'Overall uncertainty factor for parameter variation'},
        {'key': 'evaluationPeriod', 'label': 'Evaluation Period (years)', 'type': 'number',
         'default': 5, 'min': 1, 'max': 10, 'step': 1,
         'description': 'Time period for ROI calculation'},
    ],
    'groups': [
        {'name': 'Investment Parameters',
         'description': 'Core investment and implementation details',
         'parameters': ['initialInvestment', 'implementationTime', 'evaluationPeriod']},
        {'name': 'Expected Benefits',
         'description': 'Projected productivity and cost benefits',
         'parameters': ['productivityGain', 'costSaving', 'marketGrowth']},
        {'name': 'Adoption & Risk',
         'description': 'Human factors and risk considerations',
         'parameters': ['adoptionRate', 'maintenanceCost', 'riskFactor']},
    ],
    'outputs': [
        {'key': 'roi', 'label': 'Return on Investment', 'description': 'NPV divided by the initial investment'},
        {'key': 'netPresentValue', 'label': 'Net Present Value ($)'},
        {'key': 'totalBenefit', 'label': 'Discounted Total Benefit ($)'},
        {'key': 'paybackPeriod', 'label': 'Payback Period (years)', 'description': 'Capped at 20 years'},
        {'key': 'actualAdoptionRate', 'label': 'Realized Adoption Rate'},
        {'key': 'actualImplementationTime', 'label': 'Realized Implementation Time (months)'},
        {'key': 'breakEven', 'label': 'Break-even (1 = yes)'},
        {'key': 'riskAdjustedROI', 'label': 'Risk-adjusted ROI'},
    ],
    'simulation': {'logic': """
growthSpread = riskFactor * 0.5
actualProductivityGain = productivityGain * (1 - riskFactor + random() * 2 * riskFactor)
actualCostSaving = costSaving * (1 - riskFactor + random() * 2 * riskFactor)
actualAdoptionRate = min(1, max(0.1, adoptionRate * (0.7 + random() * 0.6)))
actualImplementationTime = max(1, implementationTime * (0.6 + random() * 0.8))
actualMarketGrowth = marketGrowth * (1 - growthSpread + random() * 2 * growthSpread)

baseBenefit = initialInvestment * (actualProductivityGain + actualCostSaving) * actualAdoptionRate
delayPenalty = max(0, (actualImplementationTime - implementationTime) / 12)
delayMultiplier = 1 - delayPenalty * 0.1
discountRate = 0.08

totalPresentValue = 0
cumulativeBenefit = 0
paybackPeriod = evaluationPeriod + 1
for year in range(1, evaluationPeriod + 1):
    maturity = min(1, year / 2)
    growth = (1 + actualMarketGrowth) ** (year - 1)
    maintenance = initialInvestment * maintenanceCost * 1.03 ** (year - 1)
    netBenefit = baseBenefit * delayMultiplier * maturity * growth - maintenance
    totalPresentValue += netBenefit / (1 + discountRate) ** year
    previous = cumulativeBenefit
    cumulativeBenefit += netBenefit
    if paybackPeriod > evaluationPeriod and cumulativeBenefit >= initialInvestment:
        paybackPeriod = year - 1 + (initialInvestment - previous) / netBenefit

netPresentValue = totalPresentValue - initialInvestment
roi = netPresentValue / initialInvestment

return {
    roi: roi,
    netPresentValue: netPresentValue,
    totalBenefit: totalPresentValue,
    paybackPeriod: min(paybackPeriod, 20),
    actualAdoptionRate: actualAdoptionRate,
    actualImplementationTime: actualImplementationTime,
    breakEven: netPresentValue >= 0,
    riskAdjustedROI: roi * (1 - riskFactor * 0.1),
}
"""},
}


MARKETING_CAMPAIGN_ROI: Dict[str, Any] = {
    'id': 'marketing-campaign-roi',
    'name': 'Marketing Campaign ROI',
    'category': 'Marketing',
    'description': 'Model customer acquisition and return of a marketing campaign sized against company ARR',
    'version': '1.0.0',
    'tags': ['marketing', 'campaign', 'roi', 'customer', 'acquisition'],
    'businessContext': True,
    'parameters': [
        {'key': 'campaignSpend', 'label': 'Campaign Spend ($)', 'type': 'number',
         'default': 50000, 'min': 5000, 'max': 5000000, 'step': 5000,
         'description': 'Planned spend; capped at the quarterly budget'},
        {'key': 'costPerLead', 'label': 'Cost per Lead ($)', 'type': 'number',
         'default': 50, 'min': 1, 'max': 1000, 'step': 1},
        {'key': 'conversionRate', 'label': 'Lead Conversion Rate', 'type': 'number',
         'default': 0.05, 'min': 0.001, 'max': 0.5, 'step': 0.001,
         'description': 'Fraction of leads that become customers'},
        {'key': 'customerLifetimeValue', 'label': 'Customer Lifetime Value ($)', 'type': 'number',
         'default': 2000, 'min': 50, 'max': 100000, 'step': 50},
        {'key': 'uncertainty', 'label': 'Uncertainty', 'type': 'number',
         'default': 0.25, 'min': 0.05, 'max': 0.75, 'step': 0.05,
         'description': 'Relative spread applied to lead cost and conversion'},
    ],
    'outputs': [
        {'key': 'roi', 'label': 'Campaign ROI (%)'},
        {'key': 'paybackMonths', 'label': 'Payback Period (months)',
         'description': 'Lifetime value assumed to be realized over 24 months'},
        {'key': 'customerAcquisitionCost', 'label': 'Customer Acquisition Cost ($)'},
        {'key': 'newCustomers', 'label': 'New Customers'},
    ],
    'simulation': {'logic': """
spend = min(campaignSpend, quarterly_budget)
leads = spend / (costPerLead * (1 - uncertainty + random() * 2 * uncertainty))
newCustomers = leads * conversionRate * (1 - uncertainty + random() * 2 * uncertainty)
revenue = newCustomers * customerLifetimeValue * (0.8 + random() * 0.4)

return {
    roi: calculate_roi(spend, revenue),
    paybackMonths: calculate_payback_period(spend, revenue / 24),
    customerAcquisitionCost: calculate_cac(spend, newCustomers),
    newCustomers: newCustomers,
}
"""},
}

BUILTIN_CONFIGS = (AI_INVESTMENT_ROI, MARKETING_CAMPAIGN_ROI)


def _factory(config: Dict[str, Any]):
    def build() -> Simulation:
        return Simulation.from_config(deepcopy(config))
    return build


def register_builtin_simulations(registry) -> None:
    """Register every built-in simulation on `registry`."""
    for config in BUILTIN_CONFIGS:
        registry.register(_factory(config))
