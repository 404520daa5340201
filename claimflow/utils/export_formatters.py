"""
Export Formatters for Explanation of Benefits Documents.

Provides JSON, HTML and plain text renderings of an EOBDocument. HTML and
text are rendered from Jinja2 templates; HTML output is autoescaped.
"""

import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from jinja2 import DictLoader, Environment, StrictUndefined, select_autoescape

from claimflow.core.enums import EOBFormat
from claimflow.schemas.eob import EOBDocument


# =============================================================================
# Templates
# =============================================================================

EOB_HTML_TEMPLATE = """\
<div class="eob">
<h1>Explanation of Benefits {{ eob.eob_number }}</h1>
<p>This is not a bill.</p>
<dl>
<dt>Member</dt><dd>{{ eob.member_name }} ({{ eob.member_id_display }})</dd>
<dt>Provider</dt><dd>{{ eob.provider_name }}</dd>
<dt>Claim</dt><dd>{{ eob.claim_id }}</dd>
<dt>Service date</dt><dd>{{ eob.service_date | isodate }}</dd>
<dt>Status</dt><dd>{{ eob.claim_status }}</dd>
</dl>
<table>
<tr><th>#</th><th>Code</th><th>Description</th><th>Charged</th><th>Plan paid</th><th>Your responsibility</th><th>Status</th></tr>
{% for line in eob.line_items %}
<tr><td>{{ line.line_number }}</td><td>{{ line.procedure_code }}</td><td>{{ line.procedure_description or "" }}</td><td>{{ line.charged_amount | currency }}</td><td>{{ line.plan_paid | currency }}</td><td>{{ line.your_responsibility | currency }}</td><td>{{ line.status }}</td></tr>
{% endfor %}
</table>
<table class="summary">
<tr><td>Total charges</td><td>{{ eob.summary.total_charges | currency }}</td></tr>
<tr><td>Provider discount</td><td>{{ eob.summary.provider_discount | currency }}</td></tr>
<tr><td>Plan paid</td><td>{{ eob.summary.plan_paid | currency }}</td></tr>
<tr><td>Your responsibility</td><td>{{ eob.summary.your_responsibility | currency }}</td></tr>
</table>
{% if eob.denial_reasons %}
<h2>Reasons</h2>
<ul>{% for reason in eob.denial_reasons %}<li>{{ reason }}</li>{% endfor %}</ul>
{% endif %}
{% if eob.messages %}
<ul>{% for message in eob.messages %}<li>{{ message }}</li>{% endfor %}</ul>
{% endif %}
{% if eob.appeal %}
<h2>Your appeal rights</h2>
<p>Appeal by {{ eob.appeal.deadline_date | isodate }}.</p>
<pre>{{ eob.appeal.instructions }}</pre>
{% endif %}
{% for disclosure in eob.legal_disclosures %}
<p class="disclosure">{{ disclosure }}</p>
{% endfor %}
</div>
"""

EOB_TEXT_TEMPLATE = """\
EXPLANATION OF BENEFITS  {{ eob.eob_number }}
This is not a bill.

Member:       {{ eob.member_name }} ({{ eob.member_id_display }})
Provider:     {{ eob.provider_name }}
Claim:        {{ eob.claim_id }}
Service date: {{ eob.service_date | isodate }}
Status:       {{ eob.claim_status }}

{% for line in eob.line_items %}
{{ "%3d" | format(line.line_number) }} {{ "%-8s" | format(line.procedure_code) }} charged {{ line.charged_amount | currency }}  plan paid {{ line.plan_paid | currency }}  you owe {{ line.your_responsibility | currency }}  [{{ line.status }}]
{% endfor %}

Total charges:       {{ eob.summary.total_charges | currency }}
Provider discount:   {{ eob.summary.provider_discount | currency }}
Plan paid:           {{ eob.summary.plan_paid | currency }}
Your responsibility: {{ eob.summary.your_responsibility | currency }}
{% if eob.denial_reasons %}

Reasons:
{% for reason in eob.denial_reasons %}
  - {{ reason }}
{% endfor %}
{% endif %}
{% if eob.messages %}

{% for message in eob.messages %}
{{ message }}
{% endfor %}
{% endif %}
{% if eob.appeal %}

Appeal deadline: {{ eob.appeal.deadline_date | isodate }}
{{ eob.appeal.instructions }}
{% endif %}
{% if eob.legal_disclosures %}

{% for disclosure in eob.legal_disclosures %}
{{ disclosure }}
{% endfor %}
{% endif %}
"""


def currency_filter(value: Decimal) -> str:
    return f"${value:,.2f}"


def isodate_filter(value: Optional[date]) -> str:
    return value.isoformat() if value else ""


def create_template_environment() -> Environment:
    """Create the Jinja2 environment holding the EOB templates."""
    env = Environment(
        loader=DictLoader(
            {
                "eob.html": EOB_HTML_TEMPLATE,
                "eob.txt": EOB_TEXT_TEMPLATE,
            }
        ),
        autoescape=select_autoescape(["html", "xml"]),
        undefined=StrictUndefined,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["currency"] = currency_filter
    env.filters["isodate"] = isodate_filter
    return env


_environment = create_template_environment()


# =============================================================================
# Formatters
# =============================================================================


class JSONEncoder(json.JSONEncoder):
    """
    Custom JSON encoder for document data.

    Handles UUID, Decimal, datetime, date, and Enum types. Decimals are
    written as strings so cents are preserved.
    """

    def default(self, obj: Any) -> Any:
        if isinstance(obj, UUID):
            return str(obj)
        if isinstance(obj, Decimal):
            return str(obj)
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, date):
            return obj.isoformat()
        if isinstance(obj, Enum):
            return obj.value
        return super().default(obj)


def format_as_json(document: EOBDocument) -> str:
    """
    Format an EOB as JSON.

    Args:
        document: EOB document

    Returns:
        JSON string
    """
    return json.dumps(document.model_dump(), cls=JSONEncoder, indent=2)


def format_as_html(document: EOBDocument) -> str:
    """Format an EOB as an autoescaped HTML fragment."""
    return _environment.get_template("eob.html").render(eob=document)


def format_as_text(document: EOBDocument) -> str:
    """Format an EOB as plain text."""
    return _environment.get_template("eob.txt").render(eob=document)


def get_content_type(format: EOBFormat) -> str:
    """
    Get the Content-Type for an EOB format.

    Args:
        format: EOB format

    Returns:
        MIME type string
    """
    if format == EOBFormat.JSON:
        return "application/json"
    if format == EOBFormat.HTML:
        return "text/html"
    return "text/plain"
