from __future__ import annotations

from html import escape


_LAYOUT = """<!DOCTYPE html>
<html>
<head>
<style>
body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
.container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
.header {{ background-color: {accent}; color: white; padding: 20px; text-align: center; }}
.content {{ padding: 20px; background-color: #f9f9f9; }}
.code {{ font-size: 28px; font-weight: bold; letter-spacing: 6px; text-align: center; }}
.footer {{ text-align: center; padding: 20px; font-size: 12px; color: #666; }}
</style>
</head>
<body>
<div class="container">
<div class="header"><h2>{title}</h2></div>
<div class="content">{content}</div>
<div class="footer"><p>This is an automated message from SalesPipe CRM. Please do not reply.</p></div>
</div>
</body>
</html>
"""


def render_notification_email(title: str, message: str) -> str:
    return _LAYOUT.format(accent="#4CAF50", title=escape(title), content=f"<p>{escape(message)}</p>")


def render_otp_email(user_name: str, code: str, validity_minutes: int) -> str:
    content = (
        f"<p>Hello {escape(user_name)},</p>"
        "<p>Use the following one-time password to reset your password:</p>"
        f'<p class="code">{escape(code)}</p>'
        f"<p>This code expires in {validity_minutes} minutes. If you did not request a reset, ignore this email.</p>"
    )
    return _LAYOUT.format(accent="#1E88E5", title="Password Reset", content=content)
