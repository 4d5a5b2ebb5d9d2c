"""URL patterns and id shapes for the Gemini web app."""

import re

BATCH_RE = re.compile(r"/_/BardChatUi/data/batchexecute")
CONVERSATIONS_RE = re.compile(r"/conversations")
APP_PATH_RE = re.compile(r"/app/([a-z0-9]+)$", re.IGNORECASE)

GEMINI_HOST = "gemini.google.com"
GEMINI_APP_URL = "https://gemini.google.com/app/"

CONVERSATION_ID_RE = re.compile(r"^c_[a-z0-9]+$", re.IGNORECASE)
RESPONSE_ID_RE = re.compile(r"^rc_[a-z0-9]+$", re.IGNORECASE)
RESPONSE_ID_SHORT_RE = re.compile(r"^r_[a-z0-9]+$", re.IGNORECASE)
# Hex hashes that sometimes identify a user turn
MESSAGE_HASH_RE = re.compile(r"^[a-f0-9]{12,}$", re.IGNORECASE)

WRB_MARKER = "wrb.fr"
DEFAULT_TITLE = "Gemini Chat"
