from microclass.session.assembler import TranscriptAssembler
from microclass.session.controller import SessionController
from microclass.session.silence import SilenceTracker

__all__ = ["SessionController", "SilenceTracker", "TranscriptAssembler"]
