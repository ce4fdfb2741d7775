"""
SpeechRelay - Browser to Deepgram Streaming Proxy

A small service that keeps the transcription API key on the server while
letting browsers stream microphone audio to Deepgram in real time.

Architecture:
- Each module is self-contained with clear interfaces
- Modules communicate only through defined interfaces

Modules:
- session: Accepts browser connections and owns session lifetime
- relay: Bidirectional forwarding and close-code translation
- upstream: Outbound connection to the transcription provider
- api: HTTP response models
"""

__version__ = "1.0.0"
