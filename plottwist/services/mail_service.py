"""
이메일 발송 서비스
"""

from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
import smtplib
import ssl
import asyncio
import logging

from plottwist.core.config import settings


logger = logging.getLogger(__name__)

_HTML_WRAPPER = """
    <div style="font-family: system-ui, -apple-system, Segoe UI, Roboto, sans-serif; color:#111; max-width:600px;">
      {body}
      <hr style="margin:20px 0;border:none;border-top:1px solid #e5e7eb;" />
      <p style="font-size:12px;color:#6b7280;">This is an automated message from PlotTwist.</p>
    </div>
"""

_BUTTON = (
    '<p><a href="{url}" style="display:inline-block;padding:12px 16px;background:#2563eb;'
    'color:#fff;text-decoration:none;border-radius:8px;">{label}</a></p>'
    '<p>If the button does not work, paste this link into your browser:<br/><a href="{url}">{url}</a></p>'
)


def _build_verification_email(verify_url: str) -> tuple[str, str, str]:
    """인증 메일 제목/텍스트/HTML 생성"""
    subject = "[PlotTwist] Verify your email address"
    text = (
        "Welcome to PlotTwist!\n\n"
        "Please verify your email address by opening the link below:\n"
        f"{verify_url}\n\n"
        "The link is valid for 24 hours.\n"
        "If you did not create an account, you can ignore this message."
    )
    html = _HTML_WRAPPER.format(body=(
        "<h2>Verify your email address</h2>"
        "<p>Welcome to PlotTwist! The link below is valid for 24 hours.</p>"
        + _BUTTON.format(url=verify_url, label="Verify email")
    ))
    return subject, text, html


def _build_password_reset_email(reset_url: str) -> tuple[str, str, str]:
    """비밀번호 재설정 메일 생성"""
    subject = "[PlotTwist] Reset your password"
    text = (
        "We received a request to reset your password.\n"
        f"{reset_url}\n\n"
        "The link is valid for 1 hour. If you did not ask for this, ignore this message."
    )
    html = _HTML_WRAPPER.format(body=(
        "<h2>Reset your password</h2>"
        "<p>The link below is valid for 1 hour.</p>"
        + _BUTTON.format(url=reset_url, label="Reset password")
    ))
    return subject, text, html


def _build_invitation_email(inviter_name: str, story_title: str, story_description: str) -> tuple[str, str, str]:
    """스토리 초대 메일 생성"""
    subject = f'{inviter_name} invited you to collaborate on "{story_title}"'
    login_url = f"{settings.FRONTEND_BASE_URL}/login"
    text = (
        f'{inviter_name} has invited you to collaborate on a story called "{story_title}" on PlotTwist!\n\n'
        f"Story description: {story_description}\n\n"
        "Log in (or sign up with this email address) and accept the invitation from your notifications:\n"
        f"{login_url}\n"
    )
    html = _HTML_WRAPPER.format(body=(
        "<h2>Story collaboration invitation</h2>"
        f"<p><strong>{escape(inviter_name)}</strong> has invited you to collaborate on "
        f"<strong>\"{escape(story_title)}\"</strong>.</p>"
        f'<div style="background:#f0f9ff;padding:16px;border-left:4px solid #2563eb;">{escape(story_description)}</div>'
        + _BUTTON.format(url=login_url, label="Open PlotTwist")
    ))
    return subject, text, html


def _send_email_sync(to_email: str, subject: str, text: str, html: str) -> None:
    """동기 SMTP 전송 (스레드 풀에서 실행)"""
    if not settings.SMTP_HOST:
        # 개발 환경: 실제 발송 없이 로그로 대체
        logger.info("[DEV] 이메일 미발송 (SMTP 미설정) → 제목: %s, 수신자: %s", subject, to_email)
        return

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = f"{settings.EMAIL_FROM_NAME} <{settings.EMAIL_FROM_ADDRESS}>"
    msg["To"] = to_email
    msg.attach(MIMEText(text, "plain", "utf-8"))
    msg.attach(MIMEText(html, "html", "utf-8"))

    context = ssl.create_default_context()
    if settings.SMTP_USE_SSL:
        with smtplib.SMTP_SSL(settings.SMTP_HOST, settings.SMTP_PORT, context=context) as server:
            if settings.SMTP_USERNAME and settings.SMTP_PASSWORD:
                server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
            server.sendmail(settings.EMAIL_FROM_ADDRESS, [to_email], msg.as_string())
    else:
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT) as server:
            if settings.SMTP_USE_TLS:
                server.starttls(context=context)
            if settings.SMTP_USERNAME and settings.SMTP_PASSWORD:
                server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
            server.sendmail(settings.EMAIL_FROM_ADDRESS, [to_email], msg.as_string())


async def _send(to_email: str, subject: str, text: str, html: str) -> None:
    loop = asyncio.get_running_loop()
    await loop.run_in_executor(None, _send_email_sync, to_email, subject, text, html)


async def send_verification_email(to_email: str, token: str) -> None:
    """이메일 인증 메일 발송 (비동기)"""
    verify_url = f"{settings.FRONTEND_BASE_URL}/verify-email?token={token}"
    await _send(to_email, *_build_verification_email(verify_url))


async def send_password_reset_email(to_email: str, token: str) -> None:
    """비밀번호 재설정 메일 발송"""
    reset_url = f"{settings.FRONTEND_BASE_URL}/reset-password?token={token}"
    await _send(to_email, *_build_password_reset_email(reset_url))


async def send_invitation_email(
    to_email: str,
    inviter_name: str,
    story_title: str,
    story_description: str,
) -> None:
    """스토리 초대 메일 발송"""
    await _send(to_email, *_build_invitation_email(inviter_name, story_title, story_description))
