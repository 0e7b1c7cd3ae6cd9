"""
Lead qualification rules.

Decides whether extracted lead information is worth a CRM record.
"""

import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, Mapping, Optional, Union

from .lead_info import LeadInfo

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QualificationResult:
    """Outcome of a qualification check, with the flags that drove it."""
    qualified: bool
    has_email: bool = False
    has_service_interest: bool = False
    has_project_description: bool = False
    has_contact_info: bool = False
    has_lead_indicators: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


NOT_QUALIFIED = QualificationResult(qualified=False)


def _present(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def should_create_lead(
    info: Union[LeadInfo, Mapping[str, Any], None],
    raw_message: Optional[str] = None,
) -> QualificationResult:
    """
    Apply the qualification rule.

    A lead qualifies with an email plus any project signal (service
    interest, a real project description, or lead indicators), or with
    service interest plus some identity (name or company).

    Args:
        info: LeadInfo or a mapping in snake_case / camelCase
        raw_message: User message; a description equal to it is ignored

    Returns:
        QualificationResult (never raises)
    """
    if isinstance(info, LeadInfo):
        lead = info
    elif isinstance(info, Mapping):
        lead = LeadInfo.from_dict(info)
    else:
        logger.debug(f"Not qualified: unsupported input {type(info).__name__}")
        return NOT_QUALIFIED

    description = lead.project_description
    echoed = (
        _present(description)
        and raw_message is not None
        and description.strip() == raw_message.strip()
    )

    has_email = _present(lead.email)
    has_service_interest = _present(lead.service_requested)
    has_project_description = _present(description) and not echoed
    has_contact_info = any(_present(v) for v in (lead.first_name, lead.last_name, lead.company))
    has_lead_indicators = any(
        _present(v)
        for v in (lead.budget_range, lead.timeline, lead.company, lead.phone, lead.first_name, lead.last_name)
    )

    qualified = (
        has_email and (has_service_interest or has_project_description or has_lead_indicators)
    ) or (has_service_interest and has_contact_info)

    result = QualificationResult(
        qualified=qualified,
        has_email=has_email,
        has_service_interest=has_service_interest,
        has_project_description=has_project_description,
        has_contact_info=has_contact_info,
        has_lead_indicators=has_lead_indicators,
    )
    logger.debug(f"Lead qualification: {result}")
    return result
