"""
Tests for notification classification
"""
from inquiry_responder.classifier import NotificationClassifier, classify
from inquiry_responder.models import NotificationType


class TestNewInquiry:
    """Subjects that announce a new inquiry"""

    def test_booking_inquiry(self):
        result = classify("Booking Inquiry from Nancy E", "Furnished Finder <noreply@furnishedfinder.com>")

        assert result.type == NotificationType.NEW_INQUIRY
        assert result.name == "Nancy E"
        assert result.email == "noreply@furnishedfinder.com"

    def test_booking_inquiry_with_id(self):
        result = classify("Booking Inquiry from John Smith [ID#48213]", "noreply@furnishedfinder.com")

        assert result.type == NotificationType.NEW_INQUIRY
        assert result.name == "John Smith"
        assert result.inquiry_id == "48213"

    def test_property_owner_message(self):
        result = classify("Property Owner Message from Maria Lopez", "")

        assert result.type == NotificationType.NEW_INQUIRY
        assert result.name == "Maria Lopez"

    def test_inquiry_without_name(self):
        """Marker present but no name after it"""
        result = classify("Property Owner Message", "")

        assert result.type == NotificationType.NEW_INQUIRY
        assert result.name is None


class TestOtherNotifications:
    """Subjects that are not actionable"""

    def test_reply_notification(self):
        result = classify("New reply from Nancy E", "noreply@furnishedfinder.com")
        assert result.type == NotificationType.REPLY

    def test_re_prefix_is_reply(self):
        result = classify("Re: your listing", "someone@example.com")
        assert result.type == NotificationType.REPLY

    def test_unrelated_subject(self):
        result = classify("Your monthly listing report", "noreply@furnishedfinder.com")

        assert result.type == NotificationType.UNKNOWN
        assert result.name is None

    def test_empty_subject(self):
        result = classify("", "")
        assert result.type == NotificationType.UNKNOWN

    def test_sender_without_angle_brackets_has_no_email(self):
        result = classify("Booking Inquiry from Nancy E", "noreply@furnishedfinder.com")
        assert result.email is None


class TestPurity:
    """Classification has no state"""

    def test_same_input_same_output(self):
        classifier = NotificationClassifier()
        first = classifier.classify("Booking Inquiry from Nancy E", "")
        second = classifier.classify("Booking Inquiry from Nancy E", "")
        assert first == second
