from typing import Final

API_TITLE: Final[str] = "SpamZero API"
API_VERSION: Final[str] = "1.0.0"
