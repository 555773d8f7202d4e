"""
Review Request Composition
==========================

Builds the SMS body a customer receives. Pure function of the owner's
profile, the customer record and the recipient's region.
"""

from typing import Optional

from .models import Customer, User

MAX_REQUESTS_PER_CUSTOMER = 3

DEFAULT_TEMPLATE = (
    "You recently had {business} for work. "
    "We'd greatly appreciate a review on one or all of the following links:"
)

# Required by carriers for A2P traffic to North America
US_CA_COMPLIANCE_FOOTER = "Msg&data rates may apply. Reply STOP to opt out, HELP for help."
COMPLIANCE_REGIONS = ("US", "CA")


def format_review_links(review_links) -> list[str]:
    """Render 'Name: url' lines, skipping incomplete links."""
    if not isinstance(review_links, list):
        return []
    return [
        f"{link['name']}: {link['url']}"
        for link in review_links
        if isinstance(link, dict) and link.get("name") and link.get("url")
    ]


def compose_review_request(user: User, customer: Customer, region: Optional[str] = None) -> str:
    """
    Compose the review-request SMS.

    Layout:
        Hi {name},              (unless include_name_in_sms is off)
        {template}              ({businessName} substituted)
        Job: {job_description}  (unless include_job_in_sms is off or blank)
        {link lines}
        {compliance footer}     (US/CA recipients only)
    """
    business = user.business_name or "us"
    body = ""

    if user.include_name_in_sms is not False and customer.name:
        body += f"Hi {customer.name},\n\n"

    body += user.sms_template or DEFAULT_TEMPLATE.format(business=business)
    body = body.replace("{businessName}", business)

    job = customer.job_description
    if user.include_job_in_sms is not False and job and job.strip():
        body += f"\n\nJob: {job}"

    links = format_review_links(user.review_links)
    if links:
        body += "\n\n" + "\n".join(links)

    if region in COMPLIANCE_REGIONS:
        body += f"\n\n{US_CA_COMPLIANCE_FOOTER}"

    return body
