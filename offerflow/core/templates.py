"""HTML and data templates used when generating and sending offers."""
from __future__ import annotations

from datetime import date, timedelta
from html import escape
from typing import Any

from offerflow.domain import CandidateIdentity, JobSummary

DEFAULT_OFFER_SALARY = "75000"
DEFAULT_OFFER_SALARY_DISPLAY = "75,000"
DEFAULT_COMPANY_NAME = "Your Company Name"
RESPONSE_WINDOW = "5 business days"
START_DATE_OFFSET = timedelta(days=30)


def offer_document(job_title: str, candidate: CandidateIdentity, amount: str) -> str:
    salary = amount or DEFAULT_OFFER_SALARY_DISPLAY
    title = escape(job_title)
    return (
        f"<h2>Job Offer - {title}</h2>\n"
        f"<p>Dear {escape(candidate.full_name)},</p>\n"
        f"<p>We are pleased to offer you the position of {title}.</p>\n"
        f"<p>Salary: ${escape(salary)}</p>\n"
        f"<p>Please review and respond within {RESPONSE_WINDOW}.</p>\n"
    )


def offer_email_subject(job_title: str) -> str:
    return f"Job Offer - {job_title}"


def offer_email_html(job_title: str, candidate: CandidateIdentity) -> str:
    title = escape(job_title)
    return (
        "<h2>Job Offer</h2>\n"
        f"<p>Dear {escape(candidate.first_name)},</p>\n"
        f"<p>We are pleased to offer you the position of {title}.</p>\n"
        "<p>Please review the attached offer letter and respond within "
        f"{RESPONSE_WINDOW}.</p>\n"
    )


def offer_email_content(candidate_name: str, position: str, *, company_name: str = DEFAULT_COMPANY_NAME) -> str:
    """Longer congratulation email sent alongside a generated PDF letter."""

    name = escape(candidate_name)
    role = escape(position)
    company = escape(company_name)
    return f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
      <h1 style="color: #2563eb; margin-bottom: 20px;">Congratulations {name}!</h1>
      <p style="font-size: 16px; line-height: 1.5;">
        We are delighted to extend an offer for the position of <strong>{role}</strong> at our company.
      </p>
      <p style="font-size: 16px; line-height: 1.5;">
        Please find your detailed offer letter attached to this email. The offer contains:
      </p>
      <ul style="font-size: 14px; line-height: 1.6;">
        <li>Complete compensation details</li>
        <li>Job responsibilities and expectations</li>
        <li>Benefits and perks</li>
        <li>Start date and other important information</li>
      </ul>
      <p style="font-size: 16px; line-height: 1.5;">
        Please review the offer carefully and respond within <strong>{RESPONSE_WINDOW}</strong>.
        If you have any questions, please don't hesitate to reach out.
      </p>
      <p style="font-size: 16px; line-height: 1.5;">We look forward to welcoming you to our team!</p>
      <div style="border-top: 1px solid #e5e7eb; padding-top: 20px; margin-top: 30px;">
        <p style="font-size: 14px; color: #6b7280; margin: 0;">
          Best regards,<br>HR Team<br>{company}
        </p>
      </div>
    </div>
    """


def _format_amount(value: float | None) -> str:
    if value is None:
        return ""
    return f"{value:,.0f}"


def format_candidate_data_for_offer(
    candidate: CandidateIdentity,
    job: JobSummary,
    *,
    today: date | None = None,
    company_name: str = DEFAULT_COMPANY_NAME,
) -> dict[str, Any]:
    """Build the merge fields consumed by the offer letter document service."""

    start = (today or date.today()) + START_DATE_OFFSET
    currency = job.currency or ""
    salary = f"{currency} {_format_amount(job.salary_min)} - {_format_amount(job.salary_max)}".strip()
    return {
        "candidate_name": candidate.full_name,
        "position": job.title,
        "salary": salary,
        "start_date": start.isoformat(),
        "company_name": company_name,
        "candidate_email": candidate.email,
        "job_location": job.location or "Not specified",
    }
