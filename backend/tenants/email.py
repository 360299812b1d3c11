"""
Outbound transactional email through the Resend HTTP API.
Only invitations are sent today.
"""
import html
import logging

import requests
from django.conf import settings

from backend.core.i18n import DEFAULT_LOCALE, get_translator

logger = logging.getLogger('backend.tenants')

EMAIL_TIMEOUT = 10


def build_accept_url(token):
    return f"{settings.APP_URL.rstrip('/')}/invite/accept?token={token}"


def render_invitation_email(invited_by_name, tenant_name, role, accept_url, locale=DEFAULT_LOCALE):
    """Return (subject, html_body, text_body) for an invitation"""
    t = get_translator(locale)
    app_name = settings.APP_NAME
    hours = settings.INVITATION_EXPIRY_HOURS
    role_name = t(f'roles.{role}')

    subject = t('email.invitation.subject', tenantName=tenant_name)
    paragraphs = [
        t('email.invitation.greeting'),
        t('email.invitation.invitedBy', inviterName=invited_by_name, tenantName=tenant_name, appName=app_name),
        t('email.invitation.roleText', role=role_name),
        t('email.invitation.actionText'),
    ]
    closing = [
        t('email.invitation.expiryWarning', hours=hours),
        t('email.invitation.ignoreText'),
    ]
    footer = t('email.invitation.footer', appName=app_name)

    body_html = ''.join(f'<p>{html.escape(p)}</p>' for p in paragraphs)
    body_html += (
        f'<p><a href="{html.escape(accept_url)}" '
        f'style="display:inline-block;padding:12px 24px;background:#2563eb;color:#fff;'
        f'text-decoration:none;border-radius:6px">{html.escape(t("email.invitation.buttonText"))}</a></p>'
    )
    body_html += ''.join(f'<p style="color:#666">{html.escape(p)}</p>' for p in closing)
    body_html += f'<hr><p style="color:#999;font-size:12px">{html.escape(footer)}</p>'

    text = '\n\n'.join(paragraphs + [accept_url] + closing + ['--', footer])
    return subject, body_html, text


def send_email(to, subject, html_body, text_body):
    """
    Send one email. Never raises.

    Returns:
        dict: {'success': bool, 'error': str or None}
    """
    from backend.errorlogs.services import log_server_error

    if not settings.RESEND_API_KEY:
        logger.warning(f"RESEND_API_KEY not configured; cannot send email to {to}")
        return {'success': False, 'error': 'Email service is not configured'}

    payload = {
        'from': f"{settings.APP_NAME} <{settings.RESEND_FROM_EMAIL}>",
        'to': [to],
        'subject': subject,
        'html': html_body,
        'text': text_body,
    }
    headers = {
        'Authorization': f'Bearer {settings.RESEND_API_KEY}',
        'Content-Type': 'application/json',
    }

    try:
        response = requests.post(settings.RESEND_API_URL, json=payload, headers=headers, timeout=EMAIL_TIMEOUT)
        if response.status_code >= 400:
            try:
                message = response.json().get('message') or response.text
            except ValueError:
                message = response.text
            logger.error(f"Resend rejected email to {to}: {response.status_code} {message}")
            log_server_error(
                message=message or f'Email provider returned {response.status_code}',
                error_type='api',
                status_code=response.status_code,
                metadata={'to': to, 'context': 'send_email'},
            )
            return {'success': False, 'error': message}
        logger.info(f"Email '{subject}' sent to {to}")
        return {'success': True, 'error': None}
    except requests.exceptions.RequestException as e:
        logger.error(f"Email send error for {to}: {str(e)}")
        log_server_error(
            message=str(e),
            error_type='api',
            metadata={'to': to, 'context': 'send_email'},
        )
        return {'success': False, 'error': str(e)}


def send_invitation_email(invitation, locale=DEFAULT_LOCALE):
    subject, html_body, text_body = render_invitation_email(
        invited_by_name=invitation.invited_by_name or settings.APP_NAME,
        tenant_name=invitation.tenant.name,
        role=invitation.role,
        accept_url=build_accept_url(invitation.token),
        locale=locale,
    )
    return send_email(invitation.email, subject, html_body, text_body)
