"""
Rental Inquiry Responder

This service automates replies to rental inquiries:
- Polls the mail account for inquiry notifications
- Deduplicates and queues new inquiries for sequential processing
- Reads the full inquiry from the listing portal
- Requests an AI-generated reply
- Sends the reply automatically or forwards it for manual approval
- Records the status of every inquiry
"""

__version__ = "1.0.0"
