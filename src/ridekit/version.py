"""SDK version reported to the rides platform."""

SDK_VERSION = "0.4.0"
