"""
Application-wide constants.
Centralizes status values and limits for the contact workflow.
"""

# Contact message status values
CONTACT_STATUS_UNREAD = "unread"
CONTACT_STATUS_READ = "read"
CONTACT_STATUS_REPLIED = "replied"
CONTACT_STATUSES = (CONTACT_STATUS_UNREAD, CONTACT_STATUS_READ, CONTACT_STATUS_REPLIED)

# Sentinel accepted by the list filter meaning "every status"
STATUS_FILTER_ALL = "all"

# Admin roles allowed through the access gate
ADMIN_ROLES = ("admin", "super-admin")

# Default pagination
DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
MAX_PAGE = 10000

# Field length caps for public submissions
MAX_NAME_LENGTH = 100
MAX_SUBJECT_LENGTH = 200
MAX_MESSAGE_LENGTH = 5000
MAX_REPLY_LENGTH = 10000

# Seconds to wait on the email provider before giving up on a reply email
DISPATCH_TIMEOUT_SECONDS = 15
