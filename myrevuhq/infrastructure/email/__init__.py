from .resend_client import EmailError, ResendMailer, build_mailer

__all__ = ["EmailError", "ResendMailer", "build_mailer"]
