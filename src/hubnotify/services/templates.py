"""Rendering of notification emails and webhook payloads.

Emails use built-in HTML templates selected by event kind. Webhooks use
either the template configured by their owner or a default CloudEvents
envelope. Webhook templates are user supplied, so they are compiled in a
sandboxed Jinja2 environment, fresh for every delivery.

Template context (shared by emails and webhooks):
    base_url: Public base URL of the hub.
    namespace: Lowercase namespace used in CloudEvents types.
    event: {"id", "kind"}
    package: {"name", "version", "logoImageID", "url", "changes",
              "containsSecurityUpdates", "prerelease",
              "repository": {"kind", "name", "publisher"}}      (package events)
    repository: {"kind", "name", "userAlias", "organizationName",
                 "lastScanningErrors", "lastTrackingErrors"}   (repository events)
"""

from __future__ import annotations

import logging
from typing import Any

from jinja2 import DictLoader, Environment, StrictUndefined, TemplateError, select_autoescape
from jinja2.sandbox import SandboxedEnvironment

from hubnotify.db.models.base import EventKind

logger = logging.getLogger(__name__)


class TemplateRenderError(Exception):
    """Raised when a template cannot be compiled or rendered.

    Retrying a broken template never helps, so these failures are final.
    """


# Default body of webhook requests, a CloudEvents 1.0 envelope.
# Values go through tojson so strings are escaped, booleans are unquoted
# and string lists become JSON arrays.
DEFAULT_WEBHOOK_PAYLOAD_TEMPLATE = """
{
  "specversion" : "1.0",
  "id" : {{ event.id | tojson }},
  "source" : {{ (base_url ~ "/cloudevents") | tojson }},
  "type" : {{ ("io." ~ namespace ~ "." ~ event.kind) | tojson }},
  "datacontenttype" : "application/json",
  "data" : {
    "package": {
      "name": {{ package.name | tojson }},
      "version": {{ package.version | tojson }},
      "url": {{ package.url | tojson }},
      "changes": {{ package.changes | tojson }},
      "containsSecurityUpdates": {{ package.containsSecurityUpdates | tojson }},
      "prerelease": {{ package.prerelease | tojson }},
      "repository": {
        "kind": {{ package.repository.kind | tojson }},
        "name": {{ package.repository.name | tojson }},
        "publisher": {{ package.repository.publisher | tojson }}
      }
    }
  }
}
"""

_FOOTER = """
<p style="color: #6c757d; font-size: 12px;">
  You are receiving this email because of your notification settings.
  You can change them at <a href="{{ base_url }}/control-panel/settings/notifications">{{ base_url }}</a>.
</p>
"""

EMAIL_TEMPLATES = {
    "footer.html": _FOOTER,
    "new_release.html": """<html>
<body>
<h2>{{ package.name }} version {{ package.version }} released</h2>
<p>
  Version <b>{{ package.version }}</b> of <b>{{ package.name }}</b>
  ({{ package.repository.kind }} package from <b>{{ package.repository.publisher }}</b>)
  has been released.
</p>
{% if package.containsSecurityUpdates %}<p><b>This version contains security updates.</b></p>{% endif %}
{% if package.prerelease %}<p>This version is a pre-release.</p>{% endif %}
{% if package.changes %}
<p>Changes:</p>
<ul>
{% for change in package.changes %}  <li>{{ change }}</li>
{% endfor %}</ul>
{% endif %}
<p><a href="{{ package.url }}">View package</a></p>
{% include "footer.html" %}
</body>
</html>
""",
    "scanning_errors.html": """<html>
<body>
<h2>Something went wrong scanning repository {{ repository.name }}</h2>
<p>The last security scan of the {{ repository.kind }} repository <b>{{ repository.name }}</b> reported the following errors:</p>
<pre>{% for line in repository.lastScanningErrors %}{{ line }}
{% endfor %}</pre>
{% include "footer.html" %}
</body>
</html>
""",
    "tracking_errors.html": """<html>
<body>
<h2>Something went wrong tracking repository {{ repository.name }}</h2>
<p>The last time the {{ repository.kind }} repository <b>{{ repository.name }}</b> was processed, the following errors were found:</p>
<pre>{% for line in repository.lastTrackingErrors %}{{ line }}
{% endfor %}</pre>
{% include "footer.html" %}
</body>
</html>
""",
    "ownership_claim.html": """<html>
<body>
<h2>{{ repository.name }} repository ownership has been claimed</h2>
<p>
  The ownership of the {{ repository.kind }} repository <b>{{ repository.name }}</b>
  has been claimed by someone else and has been transferred.
</p>
<p>If you believe this is an error, please contact us at <a href="{{ base_url }}">{{ base_url }}</a>.</p>
{% include "footer.html" %}
</body>
</html>
""",
}

_EMAIL_TEMPLATE_NAMES = {
    EventKind.NEW_RELEASE: "new_release.html",
    EventKind.REPOSITORY_SCANNING_ERRORS: "scanning_errors.html",
    EventKind.REPOSITORY_TRACKING_ERRORS: "tracking_errors.html",
    EventKind.REPOSITORY_OWNERSHIP_CLAIM: "ownership_claim.html",
}


def email_subject(kind: EventKind, context: dict[str, Any]) -> str:
    """Build the subject line of a notification email."""
    if kind is EventKind.NEW_RELEASE:
        package = context["package"]
        return f"{package['name']} version {package['version']} released"

    name = context["repository"]["name"]
    if kind is EventKind.REPOSITORY_SCANNING_ERRORS:
        return f"Something went wrong scanning repository {name}"
    if kind is EventKind.REPOSITORY_TRACKING_ERRORS:
        return f"Something went wrong tracking repository {name}"
    return f"{name} repository ownership has been claimed"


class TemplateRenderer:
    """Renders emails and webhook payloads from template context.

    Attributes:
        namespace: Namespace used in CloudEvents types (e.g. "artifacthub").
    """

    def __init__(self, namespace: str = "ArtifactHub") -> None:
        self.namespace = namespace.lower()

        self._email_env = Environment(
            loader=DictLoader(EMAIL_TEMPLATES),
            autoescape=select_autoescape(["html"]),
            undefined=StrictUndefined,
        )
        # Webhook templates produce JSON (or whatever the owner wants), never HTML
        self._webhook_env = SandboxedEnvironment(autoescape=False)
        self._default_payload = self._webhook_env.from_string(DEFAULT_WEBHOOK_PAYLOAD_TEMPLATE)

    def render_email(self, kind: EventKind, context: dict[str, Any]) -> tuple[str, str]:
        """Render the subject and HTML body of a notification email.

        Args:
            kind: Kind of the event being notified.
            context: Template context for the event.

        Returns:
            Tuple of (subject, html_body).

        Raises:
            TemplateRenderError: If the template cannot be rendered.
        """
        try:
            template = self._email_env.get_template(_EMAIL_TEMPLATE_NAMES[kind])
            body = template.render(**context)
            subject = email_subject(kind, context)
        except (TemplateError, KeyError, TypeError) as e:
            raise TemplateRenderError(f"error rendering {kind.value} email: {e}") from e

        return subject, body

    def render_webhook_payload(
        self,
        context: dict[str, Any],
        template: str | None = None,
    ) -> str:
        """Render the body of a webhook request.

        Args:
            context: Template context for the event.
            template: Template configured by the webhook owner. The default
                CloudEvents envelope is used when empty.

        Returns:
            The rendered request body.

        Raises:
            TemplateRenderError: If the template cannot be compiled or rendered.
        """
        context = {"namespace": self.namespace, **context}

        if template:
            try:
                compiled = self._webhook_env.from_string(template)
            except Exception as e:
                raise TemplateRenderError(f"error parsing webhook template: {e}") from e
        else:
            compiled = self._default_payload

        # Owner templates can fail with any error, e.g. ZeroDivisionError or sandbox limits
        try:
            return compiled.render(**context)
        except Exception as e:
            raise TemplateRenderError(f"error rendering webhook payload: {e}") from e
