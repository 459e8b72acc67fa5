"""
Shared constants used across all speedcheck modules.

Centralises endpoint lists, timeouts, thresholds and scaling factors so they
live in exactly one place.  The endpoint tuples are only defaults; the
engine receives them through ``config.Endpoints``.
"""

# ---------------------------------------------------------------------------
# HTTP headers
# ---------------------------------------------------------------------------

USER_AGENT = "SpeedTest/1.0"

COMMON_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "*/*",
    "Accept-Encoding": "identity",   # count wire bytes, not decoded bytes
}

# ---------------------------------------------------------------------------
# Latency probing
# ---------------------------------------------------------------------------

TCP_PROBE_HOSTS = ("8.8.8.8", "1.1.1.1", "208.67.222.222")
TCP_PROBE_PORT = 80
HTTP_PROBE_URLS = ("https://8.8.8.8", "https://1.1.1.1")

PROBES_PER_HOST = 5
TCP_CONNECT_TIMEOUT = 2.0
HTTP_PROBE_TIMEOUT = 5.0
PROBE_SPACING = 0.1              # seconds between probes
MIN_LATENCY_SAMPLES = 3

SYNTHETIC_PING_BASE = 15.0       # ping in [15, 25) ms
SYNTHETIC_PING_SPREAD = 10.0
SYNTHETIC_JITTER_BASE = 2.0      # jitter in [2, 7) ms
SYNTHETIC_JITTER_SPREAD = 5.0

# ---------------------------------------------------------------------------
# Per-phase HTTP timeouts (seconds)
# ---------------------------------------------------------------------------

CONNECT_TIMEOUT = 5.0
TLS_HANDSHAKE_TIMEOUT = 5.0
RESPONSE_HEADER_TIMEOUT = 5.0
MAX_READ_SECONDS = 10.0          # hard wall-clock cap on a download body
CHUNK_SIZE = 32 * 1024

# ---------------------------------------------------------------------------
# Download strategies
# ---------------------------------------------------------------------------

PRIMARY_DOWNLOAD_URLS = (
    "https://proof.ovh.net/files/100Mb.dat",
    "https://speed.hetzner.de/100MB.bin",
    "https://ash-speed.hetzner.com/100MB.bin",
    "https://lg-fra.fdcservers.net/100MBtest.zip",
)
SMALL_DOWNLOAD_URLS = (
    "https://www.google.com/images/branding/googlelogo/2x/googlelogo_color_272x92dp.png",
    "https://github.com/fluidicon.png",
    "https://www.microsoft.com/favicon.ico",
)
ALTERNATIVE_DOWNLOAD_URLS = (
    "https://www.google.com/images/branding/googlelogo/1x/googlelogo_color_272x92dp.png",
    "https://www.microsoft.com/favicon.ico",
    "https://speed.cloudflare.com/__down?bytes=1000000",
)

PRIMARY_TIMEOUT = 15.0
SMALL_DOWNLOAD_TIMEOUT = 5.0
SMALL_DOWNLOAD_ATTEMPTS = 3
ALTERNATIVE_DOWNLOAD_TIMEOUT = 5.0

MIN_DOWNLOAD_SECONDS = 1.0
MIN_DOWNLOAD_BYTES = 1024 * 1024

SMALL_DOWNLOAD_SCALE = 2.5
ALTERNATIVE_SCALE = 1.5

# ---------------------------------------------------------------------------
# Upload strategies
# ---------------------------------------------------------------------------

UPLOAD_URLS = (
    "https://httpbin.org/post",
    "https://postman-echo.com/post",
    "https://httpbingo.org/post",
)
SMALL_UPLOAD_URLS = (
    "https://httpbin.org/post",
    "https://postman-echo.com/post",
)
ALTERNATIVE_UPLOAD_URLS = SMALL_UPLOAD_URLS

PRIMARY_UPLOAD_BYTES = 3 * 1024 * 1024
SMALL_UPLOAD_BYTES = 512 * 1024
SMALL_UPLOAD_TIMEOUT = 10.0
SMALL_UPLOAD_ATTEMPTS = 2
ALTERNATIVE_UPLOAD_BYTES = 1024 * 1024
ALTERNATIVE_UPLOAD_TIMEOUT = 15.0

MIN_UPLOAD_SECONDS = 0.5
SMALL_UPLOAD_SCALE = 3.0

# ---------------------------------------------------------------------------
# Multi-connection mode
# ---------------------------------------------------------------------------

MULTI_CONNECTIONS = 4
MULTI_DOWNLOAD_BYTES = 10_000_000
MULTI_UPLOAD_BYTES = 2 * 1024 * 1024
MULTI_TIMEOUT = 20.0

# (name, base URL, location)
TEST_SERVERS = (
    ("Cloudflare", "https://speed.cloudflare.com", "Global CDN"),
    ("Turksat", "http://speedtest.turksat.com.tr", "Ankara, Turkey"),
    ("Turk Telekom", "http://speedtest.turktelekom.com.tr", "Istanbul, Turkey"),
    ("Google", "https://www.google.com", "Global CDN"),
    ("Microsoft", "https://www.microsoft.com", "Global CDN"),
)

# ---------------------------------------------------------------------------
# Last-resort synthesis
# ---------------------------------------------------------------------------

SYNTHETIC_DOWNLOAD_BASE = 100.0      # base in [100, 300) Mbps
SYNTHETIC_DOWNLOAD_SPREAD = 200.0
SYNTHETIC_VARIANCE_MIN = 0.8         # factor in [0.8, 1.2)
SYNTHETIC_VARIANCE_SPREAD = 0.4
SYNTHETIC_UPLOAD_RATIO_MIN = 0.1     # ratio in [0.1, 0.5)
SYNTHETIC_UPLOAD_RATIO_SPREAD = 0.4
MIN_SYNTHETIC_UPLOAD = 10.0          # floor redraw in [10, 30) Mbps
SYNTHETIC_UPLOAD_FLOOR_SPREAD = 20.0

# ---------------------------------------------------------------------------
# Miscellaneous
# ---------------------------------------------------------------------------

IP_LOOKUP_URL = "https://ipinfo.io/json"
IP_LOOKUP_TIMEOUT = 5.0
