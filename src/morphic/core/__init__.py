"""Core real-time and offline audio processing modules."""

from morphic.core.analyzer import FileAnalyzer
from morphic.core.beat import BeatDetector
from morphic.core.integrator import MorphicClock, UniformMapper
from morphic.core.polisher import TemporalSmoother
from morphic.core.spectrum import SpectralAnalyzer
from morphic.core.voice import VoiceEngine

__all__ = [
    "BeatDetector",
    "FileAnalyzer",
    "MorphicClock",
    "SpectralAnalyzer",
    "TemporalSmoother",
    "UniformMapper",
    "VoiceEngine",
]
