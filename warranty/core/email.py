import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from html import escape
from datetime import datetime
from typing import List, Optional
from warranty.core.config import settings
import logging

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    pass


class EmailService:
    """Email service for sending SMTP emails"""

    def __init__(
        self,
        smtp_host: str = settings.SMTP_HOST,
        smtp_port: int = settings.SMTP_PORT,
        smtp_user: str = settings.SMTP_USER,
        smtp_password: str = settings.SMTP_PASSWORD,
        from_name: str = settings.SMTP_FROM_NAME,
        from_email: str = settings.SMTP_FROM_EMAIL,
        timeout: float = 30.0,
    ):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.from_name = from_name
        self.from_email = from_email
        self.timeout = timeout

    def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        reply_to: Optional[str] = None,
    ) -> None:
        """
        Send email via SMTP

        The connection is verified (STARTTLS + login) before the message
        is handed over.

        Args:
            to_email: Recipient email address
            subject: Email subject
            html_content: HTML content of the email
            reply_to: Reply-To address (optional)

        Raises:
            EmailDeliveryError: if connecting, authenticating or sending fails
        """
        message = MIMEMultipart("alternative")
        message["Subject"] = subject
        message["From"] = f"{self.from_name} <{self.from_email}>"
        message["To"] = to_email
        if reply_to:
            message["Reply-To"] = reply_to
        message.attach(MIMEText(html_content, "html", "utf-8"))

        try:
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout) as server:
                server.starttls()
                server.login(self.smtp_user, self.smtp_password)
                server.sendmail(self.from_email, [to_email], message.as_string())
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {to_email}: {str(e)}")
            raise EmailDeliveryError(str(e)) from e

        logger.info(f"Email sent successfully to {to_email}")

    def send_staff_notification(self, submission, file_names: List[str]) -> None:
        """Alert the office about a new submission"""
        created = submission.created_at or datetime.now()
        files_html = "".join(f"<li>{escape(name)}</li>" for name in file_names) or "<li>Keine Dateien</li>"
        description = escape(submission.description).replace("\n", "<br>")

        html_content = f"""
        <html>
            <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
                <div style="max-width: 800px; margin: 0 auto; padding: 20px;">
                    <h2 style="color: #E30613;">Neue Gewährleistungsmeldung</h2>
                    <p><strong>TC-Nummer:</strong> {escape(submission.tc_number)}</p>
                    <p style="background-color: #fef3c7; padding: 10px 15px;">
                        Eingangsdatum: {created.strftime("%d.%m.%Y %H:%M")}
                    </p>

                    <h3 style="color: #E30613;">Kundendaten</h3>
                    <table>
                        <tr><td><strong>Name:</strong></td><td>{escape(submission.first_name)} {escape(submission.last_name)}</td></tr>
                        <tr><td><strong>Adresse:</strong></td><td>{escape(submission.street)}<br>{escape(submission.postal_code)} {escape(submission.city)}</td></tr>
                        <tr><td><strong>E-Mail:</strong></td><td><a href="mailto:{escape(submission.email)}">{escape(submission.email)}</a></td></tr>
                        <tr><td><strong>Telefon:</strong></td><td>{escape(submission.phone)}</td></tr>
                    </table>

                    <h3 style="color: #E30613;">Problembeschreibung</h3>
                    <div style="background-color: #f9fafb; border-left: 4px solid #E30613; padding: 15px;">
                        {description}
                    </div>

                    <h3 style="color: #E30613;">Angehängte Dateien ({len(file_names)})</h3>
                    <ul>{files_html}</ul>
                </div>
            </body>
        </html>
        """

        self.send_email(
            to_email=settings.STAFF_NOTIFICATION_EMAIL,
            subject=f"Neue Gewährleistungsmeldung - TC {submission.tc_number}",
            html_content=html_content,
            reply_to=submission.email,
        )

    def send_confirmation_email(self, submission) -> None:
        """Confirm receipt to the customer, with the tracking link and login data"""
        tracking_url = f"{settings.FRONTEND_URL}/track/{submission.tracking_token}"
        login_url = f"{settings.FRONTEND_URL}/customer-login"

        html_content = f"""
        <html>
            <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
                <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
                    <h2 style="color: #E30613;">Ihre Gewährleistungsmeldung</h2>
                    <p>TC-Nummer: {escape(submission.tc_number)}</p>

                    <p>Hallo {escape(submission.first_name)} {escape(submission.last_name)},</p>
                    <p>vielen Dank für Ihre Meldung. Wir haben Ihre Gewährleistungsmeldung
                    erfolgreich erhalten und werden diese umgehend bearbeiten.</p>

                    <h3 style="color: #16a34a;">Ihr persönlicher Direktlink</h3>
                    <p>Verfolgen Sie den Status Ihrer Meldung über diesen sicheren Direktlink:</p>
                    <div style="text-align: center; margin: 25px 0;">
                        <a href="{tracking_url}" style="background-color: #16a34a; color: white; padding: 12px 30px; text-decoration: none; border-radius: 6px; display: inline-block;">
                            Status verfolgen
                        </a>
                    </div>
                    <p style="font-size: 12px; color: #6b7280;">
                        Zur Verifikation benötigen Sie Ihre Postleitzahl und E-Mail-Adresse.
                    </p>

                    <h3 style="color: #2563eb;">Kunden-Login</h3>
                    <p>Melden Sie sich unter <a href="{login_url}">{login_url}</a> an:</p>
                    <p>
                        <strong>E-Mail:</strong> {escape(submission.email)}<br>
                        <strong>TC-Nummer:</strong> {escape(submission.tc_number)}
                    </p>

                    <p style="margin-top: 30px; padding-top: 20px; border-top: 1px solid #eee; color: #666; font-size: 12px;">
                        Bei Fragen erreichen Sie uns unter
                        <a href="mailto:{settings.STAFF_NOTIFICATION_EMAIL}">{settings.STAFF_NOTIFICATION_EMAIL}</a>
                    </p>
                </div>
            </body>
        </html>
        """

        self.send_email(
            to_email=submission.email,
            subject=f"Ihre Gewährleistungsmeldung - TC {submission.tc_number}",
            html_content=html_content,
        )


# Create a singleton instance
email_service = EmailService()
