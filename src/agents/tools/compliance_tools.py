"""
Filing requirement and deadline helpers for the compliance agent

Federal, state and industry obligations are kept in static tables. A
requirement's deadline is either a recurring calendar date (annual or
quarterly), ongoing with every payroll, or relative to an event such as a
new hire; only calendar dates produce a next deadline.
"""

import calendar
import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from src.agents.tools.base import AgentTool

logger = logging.getLogger(__name__)

QUARTER_END_MONTHS = [4, 7, 10, 1]

FEDERAL_REQUIREMENTS: List[Dict[str, Any]] = [
    {
        "id": "form_941",
        "name": "Form 941 - Employer's Quarterly Federal Tax Return",
        "description": "Reports income tax, Social Security tax and Medicare tax withheld from employee paychecks.",
        "applies_to": ["all_employers"],
        "regions": ["US"],
        "deadline_type": "recurring",
        "deadline_details": {"frequency": "quarterly", "months": QUARTER_END_MONTHS, "day": 31},
        "reference_url": "https://www.irs.gov/forms-pubs/about-form-941",
        "penalties": "2% to 15% of unpaid tax depending on how late the filing is.",
    },
    {
        "id": "form_940",
        "name": "Form 940 - Employer's Annual Federal Unemployment Tax Return",
        "description": "Reports annual Federal Unemployment Tax Act (FUTA) tax.",
        "applies_to": ["all_employers"],
        "regions": ["US"],
        "deadline_type": "recurring",
        "deadline_details": {"frequency": "annual", "month": 1, "day": 31},
        "reference_url": "https://www.irs.gov/forms-pubs/about-form-940",
        "penalties": "5% of the unpaid tax for each month or part of a month the return is late.",
    },
    {
        "id": "form_w2",
        "name": "Form W-2 - Wage and Tax Statement",
        "description": "Furnished to employees and filed with the Social Security Administration.",
        "applies_to": ["all_employers"],
        "regions": ["US"],
        "deadline_type": "recurring",
        "deadline_details": {"frequency": "annual", "month": 1, "day": 31},
        "reference_url": "https://www.irs.gov/forms-pubs/about-form-w-2",
        "penalties": "$50 to $560 per form depending on how late the filing is.",
    },
    {
        "id": "form_1099",
        "name": "Form 1099-NEC - Nonemployee Compensation",
        "description": "Reports payments of $600 or more to independent contractors.",
        "applies_to": ["all_businesses"],
        "regions": ["US"],
        "deadline_type": "recurring",
        "deadline_details": {"frequency": "annual", "month": 1, "day": 31},
        "reference_url": "https://www.irs.gov/forms-pubs/about-form-1099-nec",
        "penalties": "$50 to $560 per form depending on how late the filing is.",
    },
    {
        "id": "form_i9",
        "name": "Form I-9 - Employment Eligibility Verification",
        "description": "Verifies the identity and work authorization of each new hire.",
        "applies_to": ["all_employers"],
        "regions": ["US"],
        "deadline_type": "relative",
        "deadline_details": {"event": "new_hire", "days": 3},
        "reference_url": "https://www.uscis.gov/i-9",
        "penalties": "$234 to $2,332 per employee for first-time violations.",
    },
    {
        "id": "eeoc_reporting",
        "name": "EEO-1 Component 1 Report",
        "description": "Employment data by race/ethnicity, gender and job category.",
        "applies_to": ["large_employers", "federal_contractors"],
        "employee_threshold": 100,
        "regions": ["US"],
        "deadline_type": "recurring",
        "deadline_details": {"frequency": "annual", "month": 5, "day": 31},
        "reference_url": "https://www.eeoc.gov/employers/eeo-1-data-collection",
        "penalties": "Court enforcement by the EEOC.",
    },
    {
        "id": "fmla",
        "name": "Family and Medical Leave Act Compliance",
        "description": "Job-protected unpaid leave for qualified medical and family reasons.",
        "applies_to": ["covered_employers"],
        "employee_threshold": 50,
        "regions": ["US"],
        "deadline_type": "relative",
        "deadline_details": {"event": "request", "days": 5},
        "reference_url": "https://www.dol.gov/agencies/whd/fmla",
        "penalties": "Back wages, lost benefits and other compensatory damages.",
    },
    {
        "id": "aca_reporting",
        "name": "Affordable Care Act Reporting (Forms 1094-C and 1095-C)",
        "description": "Applicable Large Employers report health coverage offered to full-time employees.",
        "applies_to": ["large_employers"],
        "employee_threshold": 50,
        "regions": ["US"],
        "deadline_type": "recurring",
        "deadline_details": {"frequency": "annual", "month": 1, "day": 31},
        "reference_url": "https://www.irs.gov/affordable-care-act/employers/information-reporting-by-applicable-large-employers",
        "penalties": "$50 to $560 per form depending on how late the filing is.",
    },
]

STATE_REQUIREMENTS: Dict[str, List[Dict[str, Any]]] = {
    "CA": [
        {
            "id": "ca_de9",
            "name": "DE 9 - Quarterly Contribution Return and Report of Wages",
            "description": "Reports wages and pays California unemployment insurance taxes.",
            "applies_to": ["all_employers"],
            "regions": ["CA"],
            "deadline_type": "recurring",
            "deadline_details": {"frequency": "quarterly", "months": QUARTER_END_MONTHS, "day": 31},
            "reference_url": "https://edd.ca.gov/en/Payroll_Taxes/Forms_and_Publications",
            "penalties": "10% of the contributions due plus interest.",
        },
        {
            "id": "ca_paid_sick_leave",
            "name": "California Paid Sick Leave",
            "description": "Paid sick leave for employees who work at least 30 days in a year.",
            "applies_to": ["all_employers"],
            "regions": ["CA"],
            "deadline_type": "relative",
            "deadline_details": {"event": "accrual", "ongoing": True},
            "reference_url": "https://www.dir.ca.gov/dlse/paid_sick_leave.htm",
            "penalties": "Back pay, administrative penalties and possible litigation.",
        },
    ],
    "NY": [
        {
            "id": "ny_nys45",
            "name": "NYS-45 - Quarterly Combined Withholding, Wage Reporting and Unemployment Insurance Return",
            "description": "Reports New York withholding, wages and unemployment insurance.",
            "applies_to": ["all_employers"],
            "regions": ["NY"],
            "deadline_type": "recurring",
            "deadline_details": {"frequency": "quarterly", "months": QUARTER_END_MONTHS, "day": 31},
            "reference_url": "https://www.tax.ny.gov/bus/ads/efile_addfaqs_nys45.htm",
            "penalties": "Up to $10,000 for late filing.",
        },
        {
            "id": "ny_paid_family_leave",
            "name": "New York Paid Family Leave",
            "description": "Paid family leave benefits for eligible employees.",
            "applies_to": ["all_employers"],
            "regions": ["NY"],
            "deadline_type": "relative",
            "deadline_details": {"event": "request", "days": 30},
            "reference_url": "https://paidfamilyleave.ny.gov/employers",
            "penalties": "Fines of up to 0.5% of weekly payroll.",
        },
    ],
    "TX": [
        {
            "id": "tx_c3",
            "name": "Form C-3 - Employer's Quarterly Report",
            "description": "Reports wages and pays Texas unemployment tax.",
            "applies_to": ["all_employers"],
            "regions": ["TX"],
            "deadline_type": "recurring",
            "deadline_details": {"frequency": "quarterly", "months": QUARTER_END_MONTHS, "day": 31},
            "reference_url": "https://www.twc.texas.gov/businesses/unemployment-tax-services",
            "penalties": "10% of the amount due.",
        },
    ],
}

INDUSTRY_REQUIREMENTS: Dict[str, List[Dict[str, Any]]] = {
    "construction": [
        {
            "id": "osha_300",
            "name": "OSHA Form 300 - Log of Work-Related Injuries and Illnesses",
            "description": "Records of work-related injuries and illnesses.",
            "applies_to": ["construction"],
            "regions": ["US"],
            "deadline_type": "recurring",
            "deadline_details": {"frequency": "annual", "month": 2, "day": 1},
            "reference_url": "https://www.osha.gov/recordkeeping/forms",
            "penalties": "$14,502 to $145,027 per violation.",
        },
    ],
    "healthcare": [
        {
            "id": "hipaa_compliance",
            "name": "HIPAA Compliance",
            "description": "Privacy and security rules for health information.",
            "applies_to": ["healthcare"],
            "regions": ["US"],
            "deadline_type": "relative",
            "deadline_details": {"event": "breach", "days": 60},
            "reference_url": "https://www.hhs.gov/hipaa/index.html",
            "penalties": "$100 to $50,000 per violation, up to $1.5 million a year.",
        },
    ],
    "restaurant": [
        {
            "id": "tip_credit_reporting",
            "name": "Tip Credit Reporting Requirements",
            "description": "Records and notices required when claiming a tip credit.",
            "applies_to": ["restaurant"],
            "regions": ["US"],
            "deadline_type": "recurring",
            "deadline_details": {"frequency": "payroll", "ongoing": True},
            "reference_url": "https://www.dol.gov/agencies/whd/fact-sheets/15-flsa-tipped-employees",
            "penalties": "Back wages and liquidated damages.",
        },
    ],
}


def _all_requirements() -> List[Dict[str, Any]]:
    requirements = list(FEDERAL_REQUIREMENTS)
    for table in (STATE_REQUIREMENTS, INDUSTRY_REQUIREMENTS):
        for entries in table.values():
            requirements.extend(entries)
    return requirements


def _applicable(
    state: Optional[str], industry: Optional[str], employee_count: Optional[int] = None
) -> List[Dict[str, Any]]:
    candidates = list(FEDERAL_REQUIREMENTS)
    if state:
        candidates.extend(STATE_REQUIREMENTS.get(state.upper(), []))
    if industry:
        candidates.extend(INDUSTRY_REQUIREMENTS.get(industry.lower(), []))

    if employee_count is None:
        return candidates
    return [
        req for req in candidates
        if not req.get("employee_threshold") or employee_count >= req["employee_threshold"]
    ]


def _on_day(year: int, month: int, day: int) -> date:
    # "Day 31" clamps to the last day of shorter months (April 30)
    return date(year, month, min(day, calendar.monthrange(year, month)[1]))


def next_deadline(requirement: Dict[str, Any], as_of: Optional[date] = None) -> Optional[date]:
    """
    Next calendar due date on or after ``as_of``

    Returns:
        date, or None for relative and per-payroll obligations
    """
    today = as_of or date.today()
    details = requirement["deadline_details"]
    if requirement["deadline_type"] != "recurring":
        return None

    frequency = details.get("frequency")
    if frequency == "annual":
        months = [details["month"]]
    elif frequency == "quarterly":
        months = details["months"]
    else:
        return None

    candidates = [
        _on_day(year, month, details["day"])
        for year in (today.year, today.year + 1)
        for month in months
    ]
    return min(d for d in candidates if d >= today)


def get_compliance_requirements(
    state: str,
    employee_count: int = 1,
    industry: Optional[str] = None,
    include_deadlines: bool = True,
    as_of: Optional[date] = None,
) -> Dict[str, Any]:
    """
    Requirements that apply to a company profile

    Requirements with an employee threshold are dropped for smaller
    companies. With deadlines included, results are ordered by next due
    date and requirements without one come last.
    """
    requirements = [dict(req) for req in _applicable(state, industry, int(employee_count))]

    if include_deadlines:
        for req in requirements:
            due = next_deadline(req, as_of)
            req["next_deadline"] = due.isoformat() if due else None
        requirements.sort(key=lambda req: (req["next_deadline"] is None, req["next_deadline"] or ""))

    logger.debug(f"{len(requirements)} compliance requirements for state={state}, employees={employee_count}")

    return {
        "requirements": requirements,
        "count": len(requirements),
        "profile": {"state": state.upper(), "employee_count": employee_count, "industry": industry},
    }


def check_compliance_status(
    requirement_id: str,
    last_filing_date: Optional[str] = None,
    as_of: Optional[date] = None,
) -> Dict[str, Any]:
    """
    Judge one requirement against the most recent filing date

    Annual obligations are compliant when filed this calendar year,
    quarterly ones when filed this quarter. Anything else that has been
    filed needs attention; never filed is not compliant.
    """
    requirement = next((req for req in _all_requirements() if req["id"] == requirement_id), None)
    if requirement is None:
        return {"error": "Requirement not found", "status": "unknown"}

    today = as_of or date.today()
    due = next_deadline(requirement, today)
    result = {
        "requirement": requirement,
        "next_deadline": due.isoformat() if due else None,
        "last_filing": None,
    }

    if not last_filing_date:
        result["status"] = "not_compliant"
        return result

    try:
        filed = date.fromisoformat(last_filing_date[:10])
    except ValueError:
        return {**result, "status": "unknown", "error": f"Invalid filing date: {last_filing_date}"}

    result["last_filing"] = filed.isoformat()
    frequency = requirement["deadline_details"].get("frequency")
    same_year = filed.year == today.year

    if frequency == "annual" and same_year:
        result["status"] = "compliant"
    elif frequency == "quarterly" and same_year and (filed.month - 1) // 3 == (today.month - 1) // 3:
        result["status"] = "compliant"
    else:
        result["status"] = "needs_attention"
    return result


def get_upcoming_deadlines(
    days_ahead: int = 30,
    state: Optional[str] = None,
    industry: Optional[str] = None,
    as_of: Optional[date] = None,
) -> Dict[str, Any]:
    """Calendar deadlines falling within ``days_ahead`` days, soonest first"""
    today = as_of or date.today()
    cutoff = today + timedelta(days=int(days_ahead))

    deadlines = []
    for req in _applicable(state, industry):
        due = next_deadline(req, today)
        if due is None or due > cutoff:
            continue
        deadlines.append({
            "requirement": req,
            "deadline_date": due.isoformat(),
            "days_until_deadline": (due - today).days,
        })
    deadlines.sort(key=lambda d: d["days_until_deadline"])

    return {"deadlines": deadlines, "count": len(deadlines), "cutoff_date": cutoff.isoformat()}


def build_compliance_tools() -> List[AgentTool]:
    """Tools exposed to the compliance agent"""
    return [
        AgentTool(
            name="get_compliance_requirements",
            description="Get applicable compliance requirements based on company profile",
            parameters={
                "type": "OBJECT",
                "properties": {
                    "state": {"type": "STRING", "description": "State code (e.g., CA, NY, TX)"},
                    "employee_count": {"type": "INTEGER", "description": "Number of employees"},
                    "industry": {"type": "STRING", "description": "Industry type (e.g., construction, healthcare)"},
                    "include_deadlines": {"type": "BOOLEAN", "description": "Whether to include upcoming deadlines"},
                },
                "required": ["state"],
            },
            handler=get_compliance_requirements,
        ),
        AgentTool(
            name="check_compliance_status",
            description="Check compliance status for a specific requirement",
            parameters={
                "type": "OBJECT",
                "properties": {
                    "requirement_id": {"type": "STRING", "description": "ID of the requirement to check"},
                    "last_filing_date": {
                        "type": "STRING",
                        "description": "Date of the most recent filing (YYYY-MM-DD), if any",
                    },
                },
                "required": ["requirement_id"],
            },
            handler=check_compliance_status,
        ),
        AgentTool(
            name="get_upcoming_deadlines",
            description="Get upcoming filing and compliance deadlines",
            parameters={
                "type": "OBJECT",
                "properties": {
                    "days_ahead": {"type": "INTEGER", "description": "Number of days ahead to check for deadlines"},
                    "state": {"type": "STRING", "description": "State code to filter deadlines"},
                    "industry": {"type": "STRING", "description": "Industry type to include"},
                },
            },
            handler=get_upcoming_deadlines,
        ),
    ]
