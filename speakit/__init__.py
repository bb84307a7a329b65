"""SpeakIt: listen to web articles and PDFs with word-by-word highlighting.

WHY: Long articles and documents are easier to get through when they can
be listened to. This package extracts readable text from a URL or a PDF,
summarizes it with a hosted language model, keeps a personal library of
saved items, and drives speech playback while estimating which word is
currently being spoken.

HOW: Four layers, each independently testable: extract (web/PDF to
text), api (summary client), core (document timing model and the
playback synchronizer behind a speech-engine port), and library
(accounts, sessions, saved items). The FastAPI server and the CLI wire
them together.

RULES:
- The playback synchronizer never talks to a concrete synthesizer
- The storage backend is constructed explicitly and injected, never global
- The words-per-minute model is the single source of timing estimates
"""

__version__ = "0.1.0"
