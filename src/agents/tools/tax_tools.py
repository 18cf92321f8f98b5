"""
Payroll tax calculation helpers for the tax agent

Simplified 2024 tables. These give the model concrete numbers to reason
with; they are not a substitute for official withholding tables.
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from src.agents.tools.base import AgentTool

logger = logging.getLogger(__name__)

PAY_PERIODS_PER_YEAR = {
    "weekly": 52,
    "biweekly": 26,
    "semimonthly": 24,
    "monthly": 12,
}

SOCIAL_SECURITY_RATE = 0.062
MEDICARE_RATE = 0.0145
ADDITIONAL_MEDICARE_RATE = 0.009
SOCIAL_SECURITY_WAGE_CAP = 168600
ADDITIONAL_MEDICARE_THRESHOLD = 200000
ALLOWANCE_VALUE = 4300

# (lower bound, upper bound or None, rate)
FEDERAL_BRACKETS: Dict[str, List[Tuple[float, Optional[float], float]]] = {
    "single": [
        (0, 11600, 0.10),
        (11600, 47150, 0.12),
        (47150, 100525, 0.22),
        (100525, 191950, 0.24),
        (191950, 243725, 0.32),
        (243725, 609350, 0.35),
        (609350, None, 0.37),
    ],
    "married_filing_jointly": [
        (0, 23200, 0.10),
        (23200, 94300, 0.12),
        (94300, 201050, 0.22),
        (201050, 383900, 0.24),
        (383900, 487450, 0.32),
        (487450, 731200, 0.35),
        (731200, None, 0.37),
    ],
}

# (threshold, rate); empty list means no state income tax
STATE_RATES: Dict[str, List[Tuple[float, float]]] = {
    "CA": [
        (0, 0.01), (10099, 0.02), (23942, 0.04), (37788, 0.06), (52455, 0.08),
        (66295, 0.093), (338639, 0.103), (406364, 0.113), (677275, 0.123), (1000000, 0.133),
    ],
    "NY": [
        (0, 0.04), (8500, 0.045), (11700, 0.0525), (13900, 0.0585), (80650, 0.0625),
        (215400, 0.0685), (1077550, 0.0965), (5000000, 0.103), (25000000, 0.109),
    ],
    "TX": [],
    "FL": [],
    "WA": [],
}


def _progressive_tax(income: float, brackets: List[Tuple[float, Optional[float], float]]) -> float:
    tax = 0.0
    for lower, upper, rate in brackets:
        if income <= lower:
            break
        top = income if upper is None else min(income, upper)
        tax += (top - lower) * rate
    return tax


def federal_income_tax(annual_income: float, filing_status: str, allowances: int = 0) -> float:
    """Annual federal income tax for a filing status"""
    brackets = FEDERAL_BRACKETS.get(filing_status, FEDERAL_BRACKETS["single"])
    tax = _progressive_tax(annual_income, brackets)
    allowance_reduction = allowances * ALLOWANCE_VALUE * 0.12
    return max(0.0, tax - allowance_reduction)


def state_income_tax(annual_income: float, state: str) -> float:
    """Annual state income tax; zero for states without one or unknown states"""
    rates = sorted(STATE_RATES.get(state.upper(), []))
    brackets = [
        (threshold, rates[i + 1][0] if i + 1 < len(rates) else None, rate)
        for i, (threshold, rate) in enumerate(rates)
    ]
    return _progressive_tax(annual_income, brackets)


def fica_taxes(gross: float, ytd_earnings: float = 0.0) -> Dict[str, float]:
    """Social Security and Medicare for one pay period"""
    social_security = 0.0
    if ytd_earnings < SOCIAL_SECURITY_WAGE_CAP:
        taxable = min(gross, SOCIAL_SECURITY_WAGE_CAP - ytd_earnings)
        social_security = taxable * SOCIAL_SECURITY_RATE

    medicare = gross * MEDICARE_RATE
    total_after = ytd_earnings + gross
    if ytd_earnings >= ADDITIONAL_MEDICARE_THRESHOLD:
        medicare += gross * ADDITIONAL_MEDICARE_RATE
    elif total_after > ADDITIONAL_MEDICARE_THRESHOLD:
        medicare += (total_after - ADDITIONAL_MEDICARE_THRESHOLD) * ADDITIONAL_MEDICARE_RATE

    return {"social_security": social_security, "medicare": medicare}


def calculate_payroll_taxes(
    gross_income: float,
    pay_frequency: str = "biweekly",
    filing_status: str = "single",
    state: str = "TX",
    allowances: int = 0,
    ytd_earnings: float = 0.0,
    year: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Estimate withholding for one pay period

    Returns:
        Dict with per-period taxes, net pay and an annual projection
    """
    periods = PAY_PERIODS_PER_YEAR.get(pay_frequency, 26)
    annual_income = gross_income * periods

    federal = federal_income_tax(annual_income, filing_status, int(allowances)) / periods
    state_tax = state_income_tax(annual_income, state) / periods
    fica = fica_taxes(gross_income, ytd_earnings)

    total = federal + state_tax + fica["social_security"] + fica["medicare"]
    logger.debug(f"Calculated payroll taxes for gross={gross_income}, state={state}, total={total:.2f}")

    return {
        "year": year or date.today().year,
        "gross_income": gross_income,
        "federal_income_tax": round(federal, 2),
        "state_income_tax": round(state_tax, 2),
        "social_security_tax": round(fica["social_security"], 2),
        "medicare_tax": round(fica["medicare"], 2),
        "total_taxes": round(total, 2),
        "net_pay": round(gross_income - total, 2),
        "annual_projection": {
            "gross_income": annual_income,
            "federal_income_tax": round(federal * periods, 2),
            "state_income_tax": round(state_tax * periods, 2),
        },
    }


def get_tax_rates(state: str, year: Optional[int] = None) -> Dict[str, Any]:
    """State income tax schedule plus FICA constants"""
    rates = STATE_RATES.get(state.upper(), [])
    return {
        "state": state.upper(),
        "year": year or date.today().year,
        "has_income_tax": bool(rates),
        "known_state": state.upper() in STATE_RATES,
        "rates": [{"threshold": threshold, "rate": rate} for threshold, rate in rates],
        "fica_rates": {
            "social_security": SOCIAL_SECURITY_RATE,
            "social_security_wage_cap": SOCIAL_SECURITY_WAGE_CAP,
            "medicare": MEDICARE_RATE,
            "additional_medicare": ADDITIONAL_MEDICARE_RATE,
            "additional_medicare_threshold": ADDITIONAL_MEDICARE_THRESHOLD,
        },
    }


def build_tax_tools() -> List[AgentTool]:
    """Tools exposed to the tax agent"""
    return [
        AgentTool(
            name="calculate_payroll_taxes",
            description="Calculate payroll taxes based on income and location information",
            parameters={
                "type": "OBJECT",
                "properties": {
                    "gross_income": {"type": "NUMBER", "description": "Gross income amount for the pay period"},
                    "pay_frequency": {
                        "type": "STRING",
                        "enum": list(PAY_PERIODS_PER_YEAR),
                        "description": "How often the employee is paid",
                    },
                    "filing_status": {
                        "type": "STRING",
                        "enum": ["single", "married_filing_jointly", "married_filing_separately", "head_of_household"],
                        "description": "Federal tax filing status",
                    },
                    "state": {"type": "STRING", "description": "State code (e.g., CA, NY, TX)"},
                    "allowances": {"type": "INTEGER", "description": "Number of withholding allowances claimed"},
                    "ytd_earnings": {"type": "NUMBER", "description": "Year-to-date earnings before this pay period"},
                    "year": {"type": "INTEGER", "description": "Tax year for the calculation"},
                },
                "required": ["gross_income", "pay_frequency", "filing_status", "state"],
            },
            handler=calculate_payroll_taxes,
        ),
        AgentTool(
            name="get_tax_rates",
            description="Get current tax rates for a specific state",
            parameters={
                "type": "OBJECT",
                "properties": {
                    "state": {"type": "STRING", "description": "State code (e.g., CA, NY, TX)"},
                    "year": {"type": "INTEGER", "description": "Tax year for which to retrieve rates"},
                },
                "required": ["state"],
            },
            handler=get_tax_rates,
        ),
    ]
