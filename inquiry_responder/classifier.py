"""
Notification classifier

Pure pattern matching on the subject and sender of a notification email. No
I/O, no state.
"""
import re
from typing import Optional

from inquiry_responder.models import Classification, NotificationType


class NotificationClassifier:
    """Classify portal notification emails"""

    # Subject prefixes that announce a new inquiry, with the tenant name after "from"
    INQUIRY_PATTERNS = [
        ('Booking Inquiry from', re.compile(r'Booking Inquiry from (.+?)(?:\[|$)')),
        ('Property Owner Message', re.compile(r'Property Owner Message from (.+?)(?:\[|$)')),
    ]

    REPLY_MARKERS = [
        'New reply from',
        'reply from',
        'Re:',
    ]

    INQUIRY_ID_PATTERN = re.compile(r'\[ID#(\d+)\]')
    EMAIL_PATTERN = re.compile(r'<(.+?)>')

    def classify(self, subject: str, sender: str) -> Classification:
        """
        Classify a notification by its subject line and sender header.

        Args:
            subject: Subject header value
            sender: From header value

        Returns:
            Classification with type, best-effort tenant name and email
        """
        subject = subject or ''
        notification_type = NotificationType.UNKNOWN
        name: Optional[str] = None

        for marker, pattern in self.INQUIRY_PATTERNS:
            if marker in subject:
                notification_type = NotificationType.NEW_INQUIRY
                match = pattern.search(subject)
                if match:
                    name = match.group(1).strip() or None
                break
        else:
            if any(marker in subject for marker in self.REPLY_MARKERS):
                notification_type = NotificationType.REPLY

        id_match = self.INQUIRY_ID_PATTERN.search(subject)
        email_match = self.EMAIL_PATTERN.search(sender or '')

        return Classification(
            type=notification_type,
            name=name,
            email=email_match.group(1).strip() if email_match else None,
            inquiry_id=id_match.group(1) if id_match else None,
        )


_classifier = NotificationClassifier()


def classify(subject: str, sender: str) -> Classification:
    """Classify a notification with the default classifier"""
    return _classifier.classify(subject, sender)
