"""Email template operations."""

from __future__ import annotations

from rich.markup import escape

from tenantctl.client import PlatformClient
from tenantctl.console import Printer, new_table

EMAIL_TEMPLATE_PREFIX = "emailTemplate/"


def template_name(template: dict) -> str:
    template_id = str(template.get("_id", ""))
    if template_id.startswith(EMAIL_TEMPLATE_PREFIX):
        return template_id[len(EMAIL_TEMPLATE_PREFIX):]
    return template_id


def _locales(template: dict) -> str:
    subject = template.get("subject")
    locales = sorted(subject) if isinstance(subject, dict) else []
    default_locale = template.get("defaultLocale")
    if isinstance(default_locale, str) and default_locale in locales:
        locales.remove(default_locale)
        locales.insert(0, f"{default_locale} (default)")
    return ", ".join(locales)


def _subject(template: dict) -> str:
    subject = template.get("subject")
    if isinstance(subject, str):
        return subject
    if not isinstance(subject, dict):
        return ""
    default_locale = template.get("defaultLocale")
    if isinstance(default_locale, str) and isinstance(subject.get(default_locale), str):
        return subject[default_locale]
    for value in subject.values():
        if isinstance(value, str):
            return value
    return ""


def list_email_templates(client: PlatformClient, printer: Printer, long: bool = False) -> bool:
    templates = sorted(client.get_email_templates(), key=template_name)
    if not long:
        for template in templates:
            printer.message(template_name(template))
        return True

    table = new_table("Id", "Name", "Status", "Locale(s)", "From", "Subject")
    for template in templates:
        status = "enabled" if template.get("enabled") else "disabled"
        table.add_row(
            escape(template_name(template)),
            escape(str(template.get("displayName") or "")),
            status,
            escape(_locales(template)),
            escape(str(template.get("from") or "")),
            escape(_subject(template)),
        )
    printer.table(table)
    return True
