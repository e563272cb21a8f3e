# Friendly Ping protocol constants (data keys, actions and notification fields)

# Data keys
K_ACTION = "action"
K_NAME = "name"
K_REGISTRATION_TOKEN = "registration_token"
K_PROFILE_PICTURE_URL = "profile_picture_url"
K_TO = "to"
K_SENDER = "sender"
K_CLIENT = "client"
K_CLIENTS = "clients"

# Wrapped binary payload key (base64 encoded CBOR map)
K_BASE64 = "base64"

# Actions
A_REGISTER_NEW_CLIENT = "register_new_client"
A_BROADCAST_NEW_CLIENT = "broadcast_new_client"
A_SEND_CLIENT_LIST = "send_client_list"
A_PING_CLIENT = "ping_client"

# Topic every client subscribes to for new-client announcements.
NEW_CLIENT_TOPIC = "/topics/newclient"

# Ping notification
PING_TITLE = "Friendly Ping!"
PING_ICON = "mipmap/ic_launcher"
PING_SOUND = "default"
PING_CLICK_ACTION = "ping_received"

# The relay registers itself as a client so a lone device can test pings.
SERVER_ADDRESS_SUFFIX = "@gcm.googleapis.com"
SERVER_CLIENT_NAME = "Larry"
SERVER_CLIENT_AVATAR_URL = (
    "https://lh3.googleusercontent.com/-Y86IN-vEObo/AAAAAAAAAAI/AAAAAAADO1I/"
    "QzjOGHq5kNQ/photo.jpg?sz=50"
)

# Push backend
GCM_SEND_URL = "https://gcm-http.googleapis.com/gcm/send"

PAYLOAD_JSON = "json"
PAYLOAD_CBOR = "cbor"
PAYLOAD_ENCODINGS = (PAYLOAD_JSON, PAYLOAD_CBOR)
