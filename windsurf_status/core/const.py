DEFAULT_API_SERVER_URL = "https://server.codeium.com"
SEAT_MANAGEMENT_SERVICE = "exa.seat_management_pb.SeatManagementService"

USER_AGENT = "windsurf-status"
IDE_NAME = "Windsurf"
# server returns invalid_argument without it
IDE_VERSION = "1.0.0"
EXTENSION_NAME = "codeium.windsurf"
EXTENSION_VERSION = "1.0.0"
LOCALE = "en-US"

AUTH_STATUS_KEY = "windsurfAuthStatus"
PROTO_BASE64_PATHS = [["userStatusProtoBinaryBase64"], ["userStatusProtoBinary"]]

# free_limited accounts without `tq` in token
FREE_LIMITED_CHAT_TOTAL = 500

PLAN_BADGES = ["FREE", "INDIVIDUAL", "PRO", "BUSINESS", "ENTERPRISE"]
