from outreach.app.models.user import User
from outreach.app.models.profile import Profile
from outreach.app.models.document import Document
from outreach.app.models.recipient import Recipient
from outreach.app.models.generated_email import GeneratedEmail, EmailAttachment
from outreach.app.models.email_tracking import EmailOpen, LinkClick
from outreach.app.models.gmail_connection import GmailConnection
from outreach.app.models.billing import (
    Subscription,
    PaymentTransaction,
    PromoCode,
    PromoCodeUse,
)
from outreach.app.models.support import Announcement, SupportTicket, Feedback
from outreach.app.models.admin import AuditLog, AppSetting, EmailBroadcast
from outreach.app.models.analytics import AIUsage, PageView
