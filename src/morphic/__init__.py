"""Audio-to-morphic-uniform engine for real-time reactive visuals."""

from morphic.core.analyzer import AudioFileAnalysis, FileAnalyzer
from morphic.core.beat import BeatDetector, BeatSettings
from morphic.core.integrator import MorphicClock, MorphicSettings, UniformFrame, UniformMapper
from morphic.core.polisher import EnvelopeParams, TemporalSmoother
from morphic.core.spectrum import SpectralAnalyzer
from morphic.core.voice import VoiceEngine, VoiceState
from morphic.io.exporter import ManifestExporter
from morphic.pipeline import MorphicPipeline
from morphic.session import FrameLoop, MorphicSession

__version__ = "0.1.0"
__all__ = [
    "AudioFileAnalysis",
    "BeatDetector",
    "BeatSettings",
    "EnvelopeParams",
    "FileAnalyzer",
    "FrameLoop",
    "ManifestExporter",
    "MorphicClock",
    "MorphicPipeline",
    "MorphicSession",
    "MorphicSettings",
    "SpectralAnalyzer",
    "TemporalSmoother",
    "UniformFrame",
    "UniformMapper",
    "VoiceEngine",
    "VoiceState",
]
